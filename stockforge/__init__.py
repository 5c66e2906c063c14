"""StockForge warehouse inventory with eBay synchronization"""

__version__ = "0.1.0"
