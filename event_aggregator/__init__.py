"""
Event Aggregator - 时序事件采集与滑动窗口均值服务

负责：
- 按固定频率写入带类型的数值事件
- 按固定频率计算最近窗口内的均值并入库
- 提供只读 REST API 查询事件与均值
"""

__version__ = "1.0.0"
