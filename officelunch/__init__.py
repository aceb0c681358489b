"""
办公楼午餐配送平台后端服务
"""

__version__ = "1.0.0"
