"""Traversal Using Relays around NAT (TURN)
:see: http://tools.ietf.org/html/rfc5766
"""
from turnamp import stun

METHOD_ALLOCATE = 0x003  # only request/response semantics defined
METHOD_REFRESH = 0x004  # only request/response semantics defined
METHOD_SEND = 0x006  # only indication semantics defined
METHOD_DATA = 0x007  # only indication semantics defined
METHOD_CREATE_PERMISSION = 0x008  # only request/response semantics defined
METHOD_CHANNEL_BIND = 0x009  # only request/response semantics defined

stun.METHOD_NAMES.update({
    METHOD_ALLOCATE: "Allocate",
    METHOD_REFRESH: "Refresh",
    METHOD_SEND: "Send",
    METHOD_DATA: "Data",
    METHOD_CREATE_PERMISSION: "CreatePermission",
    METHOD_CHANNEL_BIND: "ChannelBind",
})


ATTR_CHANNEL_NUMBER = 0x000C
ATTR_LIFETIME = 0x000D
ATTR_XOR_PEER_ADDRESS = 0x0012
ATTR_DATA = 0x0013
ATTR_XOR_RELAYED_ADDRESS = 0x0016
ATTR_EVEN_PORT = 0x0018
ATTR_REQUESTED_TRANSPORT = 0x0019
ATTR_DONT_FRAGMENT = 0x001A
ATTR_RESERVATION_TOKEN = 0x0022


# IANA protocol numbers
TRANSPORT_TCP = 0x06
TRANSPORT_UDP = 0x11

