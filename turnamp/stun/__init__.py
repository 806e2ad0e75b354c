"""Implementation of RFC 5389 Session Traversal Utilities for NAT (STUN)
:see: http://tools.ietf.org/html/rfc5389
"""

# STUN Methods Registry
METHOD_BINDING = 0x001
METHOD_SHARED_SECRET = 0x002  # (Reserved)

CLASS_REQUEST = 0x00
CLASS_INDICATION = 0x01
CLASS_RESPONSE_SUCCESS = 0x10
CLASS_RESPONSE_ERROR = 0x11


# STUN Message Types
MSG_STUN = 0b00


def msg_type(msg_method, msg_class):
    """Pack method and class into the 14 bit STUN message type
    :see: http://tools.ietf.org/html/rfc5389#section-6
    """
    return (MSG_STUN << 14
            | (msg_method & 0xf80) << 2
            | (msg_method & 0x070) << 1
            | msg_method & 0x00f
            | (msg_class & 0x10) << 4
            | (msg_class & 0x01) << 4)


def split_msg_type(value):
    """Unpack a STUN message type into (method, class)
    """
    msg_method = (value & 0x3e00) >> 2 | (value & 0x00e0) >> 1 | value & 0x000f
    msg_class = (value & 0x0100) >> 4 | (value & 0x0010) >> 4
    return msg_method, msg_class


MAGIC_COOKIE = 0x2112A442

TRANSACTION_ID_SIZE = 12

# STUN Attribute Registry
# Comprehension-required range (0x0000-0x7FFF):
ATTR_MAPPED_ADDRESS = 0x0001
ATTR_USERNAME = 0x0006
ATTR_MESSAGE_INTEGRITY = 0x0008
ATTR_ERROR_CODE = 0x0009
ATTR_UNKNOWN_ATTRIBUTES = 0x000A
ATTR_REALM = 0x0014
ATTR_NONCE = 0x0015
ATTR_XOR_MAPPED_ADDRESS = 0x0020
# Comprehension-optional range (0x8000-0xFFFF):
ATTR_SOFTWARE = 0x8022
ATTR_ALTERNATE_SERVER = 0x8023
ATTR_FINGERPRINT = 0x8028

# Error codes (class, number) and recommended reason phrases:
ERR_TRY_ALTERNATE = 3, 0, "Try Alternate"
ERR_BAD_REQUEST = 4, 0, "Bad Request"
ERR_UNAUTHORIZED = 4, 1, "Unauthorized"
ERR_UNKNOWN_ATTRIBUTE = 4, 20, "Unknown Attribute"
ERR_STALE_NONCE = 4, 38, "Stale Nonce"
ERR_SERVER_ERROR = 5, 0, "Server Error"

# Readable names, extended by the TURN package
METHOD_NAMES = {
    METHOD_BINDING: "Binding",
    METHOD_SHARED_SECRET: "SharedSecret",
}

CLASS_NAMES = {
    CLASS_REQUEST: "request",
    CLASS_INDICATION: "indication",
    CLASS_RESPONSE_SUCCESS: "success response",
    CLASS_RESPONSE_ERROR: "error response",
}


def type_name(msg_method, msg_class):
    """Readable message type, e.g. "Binding request"
    """
    method = METHOD_NAMES.get(msg_method, "{:#05x}".format(msg_method))
    return "{} {}".format(method, CLASS_NAMES[msg_class])


class StunError(Exception):
    """Base class for STUN codec errors
    """


class EncodeError(StunError):
    pass


class DecodeError(StunError):
    pass


class MessageTooShort(DecodeError):
    pass


class NotStunMessage(DecodeError):
    pass


class BadMagicCookie(DecodeError):
    pass


class LengthMismatch(DecodeError):
    pass


class MalformedAttribute(DecodeError):
    pass


class DatagramTooLarge(DecodeError):
    pass
