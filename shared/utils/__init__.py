from .common import md5_hex, random_alphanumeric, utc_isoformat

__all__ = ["md5_hex", "utc_isoformat", "random_alphanumeric"]
