# 初始化路由文件夾
from . import pattern_generation, patterns, pattern_assignments

# 匯出所有路由
routers = [
    pattern_generation.router,
    patterns.router,
    pattern_assignments.router,
]
