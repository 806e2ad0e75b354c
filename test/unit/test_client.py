from twisted.internet import error, task
from twisted.trial import unittest
from turnamp import stun, turn
from turnamp.stun.agent import Message
from turnamp.stun.attributes import Nonce
from turnamp.turn import client
from turnamp.turn.client import AmplificationClient
from test.unit.fakes import ADDR, FakeReactor, FakeTransport, allocate_response


class ProbeTest(unittest.SynchronousTestCase):
    def setUp(self):
        self.clock = task.Clock()
        self.transport = FakeTransport()
        self.client = AmplificationClient(self.clock, timeout=2)
        self.transport.protocol = self.client
        self.client.makeConnection(self.transport)

    def sent_request(self):
        data, addr = self.transport.written[-1]
        self.assertEqual(addr, ADDR)
        return Message.decode(data)

    def test_request(self):
        self.client.probe(ADDR)
        request = self.sent_request()
        self.assertEqual(request.msg_method, turn.METHOD_ALLOCATE)
        self.assertEqual(request.msg_class, stun.CLASS_REQUEST)
        self.assertEqual([attr.type for attr in request.attributes],
                         [turn.ATTR_REQUESTED_TRANSPORT, stun.ATTR_FINGERPRINT])
        self.assertEqual(request.get_attr(turn.ATTR_REQUESTED_TRANSPORT).protocol,
                         turn.TRANSPORT_UDP)
        self.assertEqual(request.size, 36)
        self.assertIsNone(request.get_attr(stun.ATTR_MESSAGE_INTEGRITY))

    def test_unique_transaction_ids(self):
        d = self.client.probe(ADDR)
        first = self.sent_request()
        self.clock.advance(2)
        self.failureResultOf(d, client.ResponseTimeout)
        self.client.probe(ADDR)
        second = self.sent_request()
        self.assertNotEqual(first.transaction_id, second.transaction_id)

    def test_error_response(self):
        d = self.client.probe(ADDR)
        response = allocate_response(self.sent_request())
        self.client.datagramReceived(bytes(response), ADDR)

        result = self.successResultOf(d)
        self.assertEqual(result.request_size, 36)
        self.assertEqual(result.response_size, 68)
        self.assertEqual(round(result.amplification_factor, 2), 1.89)
        self.assertAlmostEqual(result.amplification_factor, 68 / 36)
        self.assertEqual(result.response_type, "Allocate error response")
        self.assertTrue(result.has_nonce)
        self.assertEqual(result.nonce_size, 16)
        self.assertEqual(result.error_code, 401)
        self.assertEqual(self.clock.getDelayedCalls(), [])

    def test_error_response_without_nonce(self):
        d = self.client.probe(ADDR)
        response = allocate_response(self.sent_request(), nonce=False)
        self.client.datagramReceived(bytes(response), ADDR)

        result = self.successResultOf(d)
        self.assertFalse(result.has_nonce)
        self.assertEqual(result.nonce_size, 0)
        self.assertEqual(result.response_size, 48)

    def test_result_is_immutable(self):
        d = self.client.probe(ADDR)
        self.client.datagramReceived(bytes(allocate_response(self.sent_request())), ADDR)
        result = self.successResultOf(d)
        with self.assertRaises(AttributeError):
            result.response_size = 0

    def test_success_response_is_unexpected(self):
        d = self.client.probe(ADDR)
        response = allocate_response(self.sent_request(), stun.CLASS_RESPONSE_SUCCESS)
        self.client.datagramReceived(bytes(response), ADDR)
        failure = self.failureResultOf(d, client.UnexpectedResponse)
        self.assertEqual(failure.value.msg.msg_class, stun.CLASS_RESPONSE_SUCCESS)
        self.assertEqual(self.clock.getDelayedCalls(), [])

    def test_other_method_is_unexpected(self):
        d = self.client.probe(ADDR)
        response = allocate_response(self.sent_request(), msg_method=stun.METHOD_BINDING)
        self.client.datagramReceived(bytes(response), ADDR)
        self.failureResultOf(d, client.UnexpectedResponse)

    def test_timeout(self):
        d = self.client.probe(ADDR)
        self.clock.advance(1.5)
        self.assertNoResult(d)
        self.clock.advance(0.5)
        self.failureResultOf(d, client.ResponseTimeout)

    def test_late_response_is_dropped(self):
        d = self.client.probe(ADDR)
        request = self.sent_request()
        self.clock.advance(2)
        self.failureResultOf(d, client.ResponseTimeout)
        self.client.datagramReceived(bytes(allocate_response(request)), ADDR)

    def test_stray_transaction_ignored(self):
        d = self.client.probe(ADDR)
        request = self.sent_request()
        stray = allocate_response(request, transaction_id=b'strangertxid')
        self.client.datagramReceived(bytes(stray), ADDR)
        self.assertNoResult(d)

        self.client.datagramReceived(bytes(allocate_response(request)), ADDR)
        self.assertEqual(self.successResultOf(d).error_code, 401)

    def test_malformed_response(self):
        d = self.client.probe(ADDR)
        response = bytes(allocate_response(self.sent_request()))
        self.client.datagramReceived(response[:-4], ADDR)
        self.failureResultOf(d, client.ResponseDecodeError)
        self.assertEqual(self.clock.getDelayedCalls(), [])

    def test_malformed_datagram_from_elsewhere(self):
        d = self.client.probe(ADDR)
        self.client.datagramReceived(b'garbage', ('198.51.100.7', 3478))
        self.assertNoResult(d)

    def test_oversized_datagram(self):
        d = self.client.probe(ADDR)
        response = allocate_response(self.sent_request())
        response.add_attr(Nonce, b'x' * 700)
        response.add_attr(Nonce, b'x' * 700)
        response.add_attr(Nonce, b'x' * 700)
        self.assertGreater(len(response), client.MAX_DATAGRAM_SIZE)
        self.client.datagramReceived(bytes(response), ADDR)
        failure = self.failureResultOf(d, client.ResponseDecodeError)
        self.assertIn("exceeds", str(failure.value))

    def test_send_failure(self):
        def write(data, addr):
            raise OSError("Network is unreachable")
        self.transport.write = write
        d = self.client.probe(ADDR)
        self.failureResultOf(d, client.SendError)
        self.assertEqual(self.clock.getDelayedCalls(), [])

    def test_build_failure(self):
        def build_request():
            raise stun.EncodeError("broken")
        self.client.build_request = build_request
        self.failureResultOf(self.client.probe(ADDR), client.BuildError)


class MeasureAmplificationTest(unittest.SynchronousTestCase):
    def setUp(self):
        self.clock = task.Clock()
        self.requests = []
        self.transport = FakeTransport(self.respond)
        self.client = AmplificationClient(self.clock, timeout=2, interval=.01)
        self.transport.protocol = self.client
        self.client.makeConnection(self.transport)

    def respond(self, request):
        self.requests.append(request)
        if len(self.requests) == 2:
            return allocate_response(request, stun.CLASS_RESPONSE_SUCCESS)
        return allocate_response(request)

    def test_skips_failures(self):
        d = self.client.measure_amplification(ADDR, 3)
        self.assertNoResult(d)
        self.clock.advance(.01)
        self.clock.advance(.01)
        results = self.successResultOf(d)
        self.assertEqual(len(self.requests), 3)
        self.assertEqual(len(results), 2)
        for result in results:
            self.assertEqual(result.response_type, "Allocate error response")

    def test_paced(self):
        d = self.client.measure_amplification(ADDR, 2)
        self.assertEqual(len(self.requests), 1)
        self.clock.advance(.005)
        self.assertEqual(len(self.requests), 1)
        self.clock.advance(.005)
        self.assertEqual(len(self.requests), 2)
        self.assertEqual(len(self.successResultOf(d)), 2)

    def test_zero(self):
        self.assertEqual(self.successResultOf(self.client.measure_amplification(ADDR, 0)), [])
        self.assertEqual(self.requests, [])


class MeasureTest(unittest.SynchronousTestCase):
    def test_empty_run(self):
        reactor = FakeReactor()
        d = client.measure('turn.example.com:3478', 0, reactor)
        self.assertEqual(self.successResultOf(d), [])
        self.assertEqual(reactor.resolved, ['turn.example.com'])
        self.assertFalse(reactor.ports[0].listening)

    def test_measure(self):
        reactor = FakeReactor(responder=allocate_response)
        d = client.measure('turn.example.com:3478', 5, reactor)
        reactor.pump([.01] * 4)
        results = self.successResultOf(d)
        self.assertEqual(len(results), 5)
        self.assertEqual({r.amplification_factor for r in results}, {68 / 36})
        self.assertEqual([addr for _, addr in reactor.transport.written], [ADDR] * 5)
        self.assertEqual(reactor.interface, '')
        self.assertFalse(reactor.ports[0].listening)

    def test_all_requests_time_out(self):
        reactor = FakeReactor()
        d = client.measure('turn.example.com:3478', 3, reactor, timeout=1)
        reactor.pump([1, .01] * 3)
        self.assertEqual(self.successResultOf(d), [])
        self.assertEqual(len(reactor.transport.written), 3)
        self.assertFalse(reactor.ports[0].listening)

    def test_ip_address(self):
        reactor = FakeReactor(responder=allocate_response, addresses={})
        d = client.measure('192.0.2.1:3478', 1, reactor)
        self.assertEqual(len(self.successResultOf(d)), 1)

    def test_ipv6_address(self):
        reactor = FakeReactor(addresses={})
        d = client.measure('[2001:db8::1]:3478', 0, reactor)
        self.assertEqual(self.successResultOf(d), [])
        self.assertEqual(reactor.resolved, [])
        self.assertEqual(reactor.interface, '::')

    def test_unresolvable(self):
        reactor = FakeReactor()
        d = client.measure('nowhere.invalid:3478', 3, reactor)
        self.failureResultOf(d, client.SetupError)
        self.assertEqual(reactor.ports, [])

    def test_cannot_listen(self):
        reactor = FakeReactor(listen_error=error.CannotListenError('', 0, OSError("denied")))
        d = client.measure('turn.example.com:3478', 3, reactor)
        self.failureResultOf(d, client.SetupError)

    def test_invalid_address(self):
        for address in ('turn.example.com', ':3478', 'turn.example.com:port',
                        'turn.example.com:70000'):
            d = client.measure(address, 1, FakeReactor())
            self.failureResultOf(d, client.SetupError)

    def test_invalid_host_name(self):
        for address in ('a..b:3478', '{}.example.com:3478'.format('x' * 64)):
            reactor = FakeReactor()
            d = client.measure(address, 1, reactor)
            self.failureResultOf(d, client.SetupError)
            self.assertEqual(reactor.resolved, [])

    def test_resolve_timeout(self):
        reactor = FakeReactor(addresses={'slow.example.com': None})
        d = client.measure('slow.example.com:3478', 1, reactor)
        self.assertNoResult(d)
        reactor.advance(client.RESOLVE_TIMEOUT)
        self.failureResultOf(d, client.SetupError)
        self.assertEqual(reactor.ports, [])

    def test_negative_count(self):
        d = client.measure('turn.example.com:3478', -1, FakeReactor())
        self.failureResultOf(d, client.SetupError)

    def test_parse_address(self):
        self.assertEqual(client.parse_address('turn.example.com:3478'),
                         ('turn.example.com', 3478))
        self.assertEqual(client.parse_address('[::1]:3478'), ('::1', 3478))
