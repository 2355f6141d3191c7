__title__ = "streamget"
__description__ = "Stream a single HTTP GET response to stdout, timing every chunk."
__version__ = "0.1.0"
