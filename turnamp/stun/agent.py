import logging
from twisted.internet.protocol import DatagramProtocol
from turnamp import stun
import struct
import os


logger = logging.getLogger(__name__)


class StunUdpProtocol(DatagramProtocol):
    def __init__(self, reactor):
        self.reactor = reactor
        self._handlers = {}

    def datagramReceived(self, datagram, addr):
        try:
            msg = Message.decode(datagram)
        except stun.DecodeError as e:
            self._stun_decode_failed(datagram, addr, e)
        else:
            self._stun_received(msg, addr)

    def _stun_decode_failed(self, datagram, addr, reason):
        logger.warning("Failed to decode STUN from %s:%d: %s", addr[0], addr[1], reason)
        logger.debug(bytes(datagram).hex())

    def _stun_received(self, msg, addr):
        handler = self._handlers.get((msg.msg_method, msg.msg_class))
        if handler:
            logger.info("%s Received STUN", self)
            logger.debug(msg.format())
            handler(msg, addr)
        else:
            logger.info("%s Received unrecognized STUN", self)
            logger.debug(msg.format())
            self._stun_unhandeled(msg, addr)

    def _stun_unhandeled(self, msg, addr):
        logger.warning("%s Unhandeled message from %s:%d", self, *addr)
        logger.debug(msg.format())


class Message(bytearray):
    """STUN message structure
    :see: http://tools.ietf.org/html/rfc5389#section-6
    """

    _struct = struct.Struct('>2HL12s')
    _ATTR_TYPE_CLS = {}

    def __init__(self, data, msg_method, msg_class, magic_cookie, transaction_id):
        bytearray.__init__(self, data)
        self.msg_method = msg_method
        self.msg_class = msg_class
        self.magic_cookie = magic_cookie
        self.transaction_id = transaction_id
        self._attributes = []

    @classmethod
    def encode(cls, msg_method, msg_class, magic_cookie=stun.MAGIC_COOKIE, transaction_id=None):
        if transaction_id is None:
            transaction_id = os.urandom(stun.TRANSACTION_ID_SIZE)
        transaction_id = bytes(transaction_id)
        if len(transaction_id) != stun.TRANSACTION_ID_SIZE:
            raise stun.EncodeError(
                "Transaction ID must be {} bytes, got {}".format(
                    stun.TRANSACTION_ID_SIZE, len(transaction_id)))
        header = cls._struct.pack(stun.msg_type(msg_method, msg_class), 0,
                                  magic_cookie, transaction_id)
        return cls(header, msg_method, msg_class, magic_cookie, transaction_id)

    def add_attr(self, attr_cls, *args, **kwargs):
        attr = attr_cls.encode(self, *args, **kwargs)
        attr.validate()
        length = self.length + Attribute.struct.size + len(attr) + attr.padding
        if length > 0xffff:
            raise stun.EncodeError(
                "Message length {} exceeds 65535 bytes".format(length))
        self.extend(Attribute.struct.pack(attr.type, len(attr)))
        self.extend(attr)
        self.extend(bytes(attr.padding))
        self._attributes.append(attr)
        # update length
        self.length = len(self) - self._struct.size
        return attr

    def get_attr(self, *attr_types):
        for attr in self._attributes:
            if attr.type in attr_types:
                return attr

    @property
    def attributes(self):
        return tuple(self._attributes)

    @classmethod
    def decode(cls, data):
        """
        :see: http://tools.ietf.org/html/rfc5389#section-7.3.1
        """
        data = bytes(data)
        if len(data) < cls._struct.size:
            raise stun.MessageTooShort(
                "Message of {} bytes is shorter than the STUN header".format(len(data)))
        if data[0] >> 6 != stun.MSG_STUN:
            raise stun.NotStunMessage("Stun message MUST start with 0b00")
        msg_type, msg_length, magic_cookie, transaction_id = cls._struct.unpack_from(data)
        if magic_cookie != stun.MAGIC_COOKIE:
            raise stun.BadMagicCookie(
                "Incorrect magic cookie ({:#010x})".format(magic_cookie))
        available = len(data) - cls._struct.size
        if msg_length != available:
            raise stun.LengthMismatch(
                "Header declares {} bytes of attributes, {} available".format(
                    msg_length, available))
        if msg_length % 4:
            raise stun.LengthMismatch("Message not aligned to 4 byte boundary")

        msg_method, msg_class = stun.split_msg_type(msg_type)
        msg = cls(data, msg_method, msg_class, magic_cookie, transaction_id)
        offset = cls._struct.size
        while offset < len(data):
            if offset + Attribute.struct.size > len(data):
                raise stun.MalformedAttribute(
                    "Truncated attribute header at offset {}".format(offset))
            attr_type, attr_length = Attribute.struct.unpack_from(data, offset)
            offset += Attribute.struct.size
            if offset + attr_length > len(data):
                raise stun.MalformedAttribute(
                    "Attribute {} of {} bytes overruns the message at offset {}".format(
                        cls.attr_name(attr_type), attr_length, offset))
            try:
                attr = cls.get_attr_cls(attr_type).decode(data, offset, attr_length)
            except (struct.error, ValueError) as e:
                raise stun.MalformedAttribute(
                    "Invalid {} attribute: {}".format(cls.attr_name(attr_type), e))
            msg._attributes.append(attr)
            offset += attr_length
            offset += attr.padding
        return msg

    @classmethod
    def get_attr_cls(cls, attr_type):
        attr_cls = cls._ATTR_TYPE_CLS.get(attr_type)
        if not attr_cls:
            attr_cls = type('Unknown', (Unknown,), {'type': attr_type})
        return attr_cls

    @classmethod
    def add_attr_cls(cls, attr_cls):
        """Decorator to add a Stun Attribute as an recognized attribute type
        """
        assert not cls._ATTR_TYPE_CLS.get(attr_cls.type, False), \
            "Duplicate definition for {:#06x}".format(attr_cls.type)
        cls._ATTR_TYPE_CLS[attr_cls.type] = attr_cls
        return attr_cls

    @property
    def length(self):
        return len(self) - self._struct.size

    @length.setter
    def length(self, value):
        if value > 0xffff:
            raise stun.EncodeError("Message length {} exceeds 65535 bytes".format(value))
        struct.pack_into('>H', self, 2, value)

    @property
    def size(self):
        """Size of the message on the wire, header included
        """
        return len(self)

    @classmethod
    def attr_name(cls, attr_type):
        """Get the readable name of an attribute type, if known
        """
        attr_cls = cls._ATTR_TYPE_CLS.get(attr_type)
        return attr_cls.__name__ if attr_cls else "{:#06x}".format(attr_type)

    @property
    def type_name(self):
        return stun.type_name(self.msg_method, self.msg_class)

    def __repr__(self):
        return ("{}(method={:#05x}, class={:#04x}, length={}, "
                "magic_cookie={:#010x}, transaction_id={}, attributes={})".format(
                    type(self).__name__, self.msg_method, self.msg_class,
                    self.length, self.magic_cookie, self.transaction_id.hex(),
                    self._attributes))

    def format(self):
        string = '\n'.join([
            "{0.__class__.__name__}",
            "    method:         {0.msg_method:#05x}",
            "    class:          {0.msg_class:#04x}",
            "    length:         {0.length}",
            "    magic-cookie:   {0.magic_cookie:#010x}",
            "    transaction-id: {1}",
            "    attributes:", ""
            ]).format(self, self.transaction_id.hex())
        string += '\n'.join(["    \t" + repr(attr) for attr in self._attributes])
        return string


class Attribute(bytes):
    """STUN message attribute structure
    :see: http://tools.ietf.org/html/rfc5389#section-15
    :cvar _length: Required value length for fixed size attributes
    :cvar _max_length: Upper bound for the value length
    """
    struct = struct.Struct('>2H')
    _length = None
    _max_length = 0xffff

    def __new__(cls, data, *args, **kwargs):
        return bytes.__new__(cls, data)

    @classmethod
    def decode(cls, data, offset, length):
        return cls(data[offset:offset + length])

    @classmethod
    def encode(cls, msg, data):
        return cls(data)

    def validate(self):
        if self._length is not None and len(self) != self._length:
            raise stun.EncodeError(
                "{} value must be {} bytes, got {}".format(
                    type(self).__name__, self._length, len(self)))
        if len(self) > self._max_length:
            raise stun.EncodeError(
                "{} value of {} bytes exceeds {} bytes".format(
                    type(self).__name__, len(self), self._max_length))

    @property
    def padding(self):
        """Calculate number of padding bytes required to align to 4 byte boundary
        """
        return (4 - (len(self) % 4)) % 4

    @property
    def required(self):
        """Establish wether a attribute is in the comprehension-required range
        """
        # Comprehension-required attributes are in range 0x0000-0x7fff
        return self.type < 0x8000


class Unknown(Attribute):
    """Base class for dynamically generated unknown STUN attributes
    """
    def __repr__(self):
        return "UNKNOWN(type={:#06x}, length={}, value={})".format(
            self.type, len(self), self.hex())


# Decorator shortcut for adding known attribute classes
attribute = Message.add_attr_cls
