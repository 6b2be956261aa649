"""OAuth2 Device Authorization Grant (:rfc:`8628`) scheme.

See Also:
    :class:`~authgate.schemes.device_code.scheme.DeviceCodeScheme`
"""

from authgate.schemes.device_code.scheme import DeviceCodeScheme

__all__ = ["DeviceCodeScheme"]
