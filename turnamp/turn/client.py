"""Unauthenticated TURN Allocate probing

Each probe sends an Allocate request without credentials and measures the
size of the error response the server answers with.
"""
from collections import namedtuple
from twisted.internet import defer, error, task
from twisted.internet.abstract import isIPAddress, isIPv6Address
from turnamp.stun.agent import StunUdpProtocol, Message
from turnamp import stun, turn
from turnamp.stun import attributes as stun_attributes
from turnamp.turn import attributes
import logging


logger = logging.getLogger(__name__)


DEFAULT_TIMEOUT = 2.
DEFAULT_INTERVAL = .01
MAX_DATAGRAM_SIZE = 2048
RESOLVE_TIMEOUT = 30


AmplificationResult = namedtuple('AmplificationResult', [
    'request_size',
    'response_size',
    'amplification_factor',
    'response_type',
    'has_nonce',
    'nonce_size',
    'error_code',
    ])


class SetupError(Exception):
    """The measurement run can not be started
    """


class RequestError(Exception):
    """A single request failed, the run carries on
    """


class BuildError(RequestError):
    pass


class SendError(RequestError):
    pass


class ResponseTimeout(RequestError):
    pass


class ResponseDecodeError(RequestError):
    pass


class UnexpectedResponse(RequestError):
    def __init__(self, msg):
        RequestError.__init__(self, "Unexpected response: {}".format(msg.type_name))
        self.msg = msg


class StunTransaction(defer.Deferred):
    fail = defer.Deferred.errback
    succeed = defer.Deferred.callback

    def __init__(self, request, addr):
        defer.Deferred.__init__(self)
        self.transaction_id = request.transaction_id
        self.request = request
        self.addr = addr
        self.timer = None

    def time_out(self, timeout):
        if not self.called:
            self.fail(ResponseTimeout("No response in {}s".format(timeout)))

    def __str__(self):
        return "Transaction({})".format(self.transaction_id.hex())


class AmplificationClient(StunUdpProtocol):
    """Sends unauthenticated Allocate requests, one at a time
    :param timeout: seconds to wait for each response
    :param interval: seconds to pause between requests
    """
    max_datagram_size = MAX_DATAGRAM_SIZE

    def __init__(self, reactor, timeout=DEFAULT_TIMEOUT, interval=DEFAULT_INTERVAL):
        StunUdpProtocol.__init__(self, reactor)
        self.timeout = timeout
        self.interval = interval
        self._transactions = {}

        self._handlers.update({
            # Allocate handlers
            (turn.METHOD_ALLOCATE, stun.CLASS_RESPONSE_SUCCESS):
                self._stun_allocate_success,
            (turn.METHOD_ALLOCATE, stun.CLASS_RESPONSE_ERROR):
                self._stun_allocate_error,
            })

    def build_request(self):
        """Build an Allocate request carrying no credentials
        :see: http://tools.ietf.org/html/rfc5766#section-6.1
        """
        request = Message.encode(turn.METHOD_ALLOCATE, stun.CLASS_REQUEST)
        request.add_attr(attributes.RequestedTransport, turn.TRANSPORT_UDP)
        request.add_attr(stun_attributes.Fingerprint)
        return request

    def probe(self, addr):
        """Send one request to addr
        :returns: Deferred firing with an AmplificationResult
        """
        try:
            request = self.build_request()
        except stun.EncodeError as e:
            return defer.fail(BuildError("Failed to build request: {}".format(e)))

        transaction = StunTransaction(request, addr)
        self._transactions[transaction.transaction_id] = transaction
        transaction.addBoth(self._transaction_completed, transaction)
        transaction.addCallback(self.measure_response, request)

        transaction.timer = self.reactor.callLater(
            self.timeout, transaction.time_out, self.timeout)

        logger.info("%s Sending Allocate request to %s:%d", transaction, addr[0], addr[1])
        logger.debug(request.format())
        try:
            self.transport.write(bytes(request), addr)
        except (OSError, error.MessageLengthError) as e:
            transaction.fail(SendError("Failed to send request: {}".format(e)))
        return transaction

    def measure_response(self, response, request):
        nonce = response.get_attr(stun.ATTR_NONCE)
        error_code = response.get_attr(stun.ATTR_ERROR_CODE)
        return AmplificationResult(
            request_size=request.size,
            response_size=response.size,
            amplification_factor=response.size / request.size,
            response_type=response.type_name,
            has_nonce=nonce is not None,
            nonce_size=len(nonce) if nonce is not None else 0,
            error_code=error_code.code if error_code is not None else None)

    @defer.inlineCallbacks
    def measure_amplification(self, addr, count):
        """Probe addr count times, in sequence
        :returns: Deferred firing with the list of successful results
        """
        results = []
        for i in range(count):
            if i:
                yield task.deferLater(self.reactor, self.interval, lambda: None)
            try:
                result = yield self.probe(addr)
            except RequestError as e:
                logger.warning("Request %d failed: %s", i + 1, e)
            else:
                results.append(result)
        return results

    def _transaction_completed(self, result, transaction):
        del self._transactions[transaction.transaction_id]
        if transaction.timer and transaction.timer.active():
            transaction.timer.cancel()
        return result

    def datagramReceived(self, datagram, addr):
        if len(datagram) > self.max_datagram_size:
            self._stun_decode_failed(datagram, addr, stun.DatagramTooLarge(
                "Datagram of {} bytes exceeds {} bytes".format(
                    len(datagram), self.max_datagram_size)))
        else:
            StunUdpProtocol.datagramReceived(self, datagram, addr)

    def _stun_decode_failed(self, datagram, addr, reason):
        StunUdpProtocol._stun_decode_failed(self, datagram, addr, reason)
        # The transaction id of a malformed datagram can not be trusted
        for transaction in list(self._transactions.values()):
            if transaction.addr[:2] == addr[:2]:
                transaction.fail(ResponseDecodeError(
                    "Malformed response: {}".format(reason)))

    def _stun_received(self, msg, addr):
        if msg.transaction_id in self._transactions:
            StunUdpProtocol._stun_received(self, msg, addr)
        else:
            logger.warning("%s Dropping stray message from %s:%d (transaction %s)",
                           self, addr[0], addr[1], msg.transaction_id.hex())
            logger.debug(msg.format())

    def _stun_unhandeled(self, msg, addr):
        self._transactions[msg.transaction_id].fail(UnexpectedResponse(msg))

    def _stun_allocate_success(self, msg, addr):
        # Only the unauthenticated error response is measured
        self._transactions[msg.transaction_id].fail(UnexpectedResponse(msg))

    def _stun_allocate_error(self, msg, addr):
        """
        :see: http://tools.ietf.org/html/rfc5766#section-6.4
        """
        transaction = self._transactions[msg.transaction_id]
        logger.info("%s Allocation rejected: %r", transaction,
                    msg.get_attr(stun.ATTR_ERROR_CODE))
        transaction.succeed(msg)

    def __str__(self):
        return "AmplificationClient"


def parse_address(server_address):
    """Split "host:port" (or "[v6-host]:port") into (host, port)
    """
    host, sep, port = server_address.rpartition(':')
    if not sep or not host:
        raise SetupError("Invalid server address {!r}, expected host:port"
                         .format(server_address))
    if host.startswith('[') and host.endswith(']'):
        host = host[1:-1]
    try:
        port = int(port)
    except ValueError:
        raise SetupError("Invalid port in server address {!r}".format(server_address))
    if not 0 < port < 65536:
        raise SetupError("Port out of range in server address {!r}".format(server_address))
    if not isIPAddress(host) and not isIPv6Address(host):
        try:
            host.encode('idna')
        except UnicodeError as e:
            raise SetupError("Invalid host name {!r}: {}".format(host, e))
    return host, port


@defer.inlineCallbacks
def measure(server_address, count, reactor=None, timeout=DEFAULT_TIMEOUT,
            interval=DEFAULT_INTERVAL):
    """Measure the amplification factor of the TURN server at server_address
    :param server_address: "host:port" of the server
    :param count: number of requests to send
    :returns: Deferred firing with a list of AmplificationResult, or failing
        with SetupError
    """
    if reactor is None:
        from twisted.internet import reactor
    if count < 0:
        raise SetupError("Request count must not be negative, got {}".format(count))
    host, port = parse_address(server_address)

    if isIPv6Address(host):
        ip, interface = host, '::'
    else:
        try:
            ip = yield reactor.resolve(host).addTimeout(RESOLVE_TIMEOUT, reactor)
        except (error.DNSLookupError, error.TimeoutError, defer.TimeoutError) as e:
            raise SetupError("Failed to resolve server address {}: {}".format(host, e))
        interface = ''

    client = AmplificationClient(reactor, timeout, interval)
    try:
        listening_port = reactor.listenUDP(0, client, interface)
    except error.CannotListenError as e:
        raise SetupError("Failed to open UDP socket: {}".format(e))
    logger.info("Measuring %s:%d with %d requests", ip, port, count)
    try:
        results = yield client.measure_amplification((ip, port), count)
    finally:
        yield defer.maybeDeferred(listening_port.stopListening)
    return results
