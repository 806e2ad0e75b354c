from turnamp.stun.agent import attribute, Attribute
from turnamp import stun
import struct
import binascii


@attribute
class ErrorCode(Attribute):
    """
    :see: http://tools.ietf.org/html/rfc5389#section-15.6
    """
    type = stun.ATTR_ERROR_CODE
    _struct = struct.Struct('>2x2B')
    _max_length = 4 + 763  # reason phrase is less than 128 characters

    def __init__(self, data, err_class, err_number, reason):
        self.err_class = err_class
        self.err_number = err_number
        self.code = err_class * 100 + err_number
        self.reason = reason

    @classmethod
    def decode(cls, data, offset, length):
        if length < cls._struct.size:
            raise ValueError("value of {} bytes is too short".format(length))
        err_class, err_number = cls._struct.unpack_from(data, offset)
        err_class &= 0b111
        value = data[offset:offset + length]
        reason = value[cls._struct.size:].decode('utf8', 'replace')
        return cls(value, err_class, err_number, reason)

    @classmethod
    def encode(cls, msg, err_class, err_number, reason):
        if not 3 <= err_class <= 6 or not 0 <= err_number <= 99:
            raise stun.EncodeError(
                "Invalid error code {}{:02d}".format(err_class, err_number))
        value = cls._struct.pack(err_class, err_number) + reason.encode('utf8')
        return cls(value, err_class, err_number, reason)

    def __repr__(self):
        return "ERROR-CODE(code={}, reason={!r})".format(self.code, self.reason)


@attribute
class Realm(Attribute):
    """
    :see: http://tools.ietf.org/html/rfc5389#section-15.7
    """
    type = stun.ATTR_REALM
    _max_length = 763

    @classmethod
    def encode(cls, msg, realm):
        return cls(realm.encode('utf8'))

    def __repr__(self):
        return "REALM({})".format(bytes.__repr__(self))


@attribute
class Nonce(Attribute):
    """
    :see: http://tools.ietf.org/html/rfc5389#section-15.8
    """
    type = stun.ATTR_NONCE
    _max_length = 763  # less than 128 characters can be up to 763 bytes

    def __repr__(self):
        return "NONCE({})".format(bytes.__repr__(self))


@attribute
class Software(Attribute):
    """
    :see: http://tools.ietf.org/html/rfc5389#section-15.10
    """
    type = stun.ATTR_SOFTWARE
    _max_length = 763

    @classmethod
    def encode(cls, msg, software):
        return cls(software.encode('utf8'))

    def __repr__(self):
        return "SOFTWARE({})".format(bytes.__repr__(self))


@attribute
class Fingerprint(Attribute):
    """
    :see: http://tools.ietf.org/html/rfc5389#section-15.5
    """
    type = stun.ATTR_FINGERPRINT
    _struct = struct.Struct('>L')
    _length = _struct.size
    _MAGIC = 0x5354554e

    def __init__(self, data, fingerprint):
        self.fingerprint = fingerprint

    @classmethod
    def encode(cls, msg):
        # Checksum covers the 'length' value, so it needs to be updated first
        msg.length += cls._struct.size + Attribute.struct.size

        fingerprint = cls.checksum(msg)
        return cls(cls._struct.pack(fingerprint), fingerprint)

    @classmethod
    def decode(cls, data, offset, length):
        if length != cls._length:
            raise ValueError("value must be {} bytes".format(cls._length))
        fingerprint, = cls._struct.unpack_from(data, offset)
        return cls(data[offset:offset + length], fingerprint)

    @classmethod
    def checksum(cls, data):
        return (binascii.crc32(data) & 0xffffffff) ^ cls._MAGIC

    def __repr__(self, *args, **kwargs):
        return "FINGERPRINT(0x{})".format(self.hex())
