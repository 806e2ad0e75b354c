import struct
from turnamp.stun.agent import attribute, Attribute
from turnamp import turn


@attribute
class Lifetime(Attribute):
    """TURN STUN LIFETIME attribute
    :see: http://tools.ietf.org/html/rfc5766#section-14.2
    """
    type = turn.ATTR_LIFETIME
    _struct = struct.Struct('>L')
    _length = _struct.size

    def __init__(self, data, time_to_expiry):
        self.time_to_expiry = time_to_expiry

    @classmethod
    def decode(cls, data, offset, length):
        if length != cls._length:
            raise ValueError("value must be {} bytes".format(cls._length))
        lifetime, = cls._struct.unpack_from(data, offset)
        return cls(data[offset:offset + length], lifetime)

    @classmethod
    def encode(cls, msg, time_to_expiry):
        return cls(cls._struct.pack(time_to_expiry), time_to_expiry)

    def __repr__(self):
        return "LIFETIME(time-to-expiry={})".format(self.time_to_expiry)


@attribute
class RequestedTransport(Attribute):
    """TURN STUN REQUESTED-TRANSPORT attribute
    The RFFU bytes are zero on transmission and ignored on reception.
    :see: http://tools.ietf.org/html/rfc5766#section-14.7
    """
    type = turn.ATTR_REQUESTED_TRANSPORT
    _struct = struct.Struct('>B3x')
    _length = _struct.size

    def __init__(self, data, protocol):
        self.protocol = protocol

    @classmethod
    def encode(cls, msg, protocol=turn.TRANSPORT_UDP):
        return cls(cls._struct.pack(protocol), protocol)

    @classmethod
    def decode(cls, data, offset, length):
        if length != cls._length:
            raise ValueError("value must be {} bytes".format(cls._length))
        protocol, = cls._struct.unpack_from(data, offset)
        return cls(data[offset:offset + length], protocol)

    def __repr__(self, *args, **kwargs):
        return "REQUESTED-TRANSPORT({:#04x})".format(self.protocol)
