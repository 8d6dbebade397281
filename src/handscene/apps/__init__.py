"""命令行入口（只负责参数解析与 IO）。"""
