"""Usage: turnamp [--server host:port] [--count N] [--timeout S] [--interval S] [-v]
"""
from twisted.internet import defer, task
from twisted.python import usage
from turnamp import report
from turnamp.turn.client import measure, SetupError, DEFAULT_TIMEOUT, DEFAULT_INTERVAL
import logging
import sys


logger = logging.getLogger(__name__)


class Options(usage.Options):
    synopsis = "turnamp [options]"

    optParameters = [
        ['server', 's', '127.0.0.1:3478', "TURN server address (host:port)"],
        ['count', 'c', 100, "Number of requests to send", int],
        ['timeout', 't', DEFAULT_TIMEOUT, "Seconds to wait for each response", float],
        ['interval', 'i', DEFAULT_INTERVAL, "Seconds to pause between requests", float],
        ]

    optFlags = [
        ['verbose', 'v', "Log every request and response"],
        ]

    def postOptions(self):
        if self['count'] < 0:
            raise usage.UsageError("--count must not be negative")
        if self['timeout'] <= 0:
            raise usage.UsageError("--timeout must be positive")
        if self['interval'] < 0:
            raise usage.UsageError("--interval must not be negative")


@defer.inlineCallbacks
def run(reactor, options, out=None):
    if out is None:
        out = sys.stdout
    out.write("TURN Amplification Factor Measurement Tool\n")
    out.write("==========================================\n")
    out.write("Target server: {}\n".format(options['server']))
    out.write("Request count: {}\n".format(options['count']))

    try:
        results = yield measure(options['server'], options['count'], reactor,
                                timeout=options['timeout'],
                                interval=options['interval'])
    except SetupError as e:
        logger.error("Failed to measure amplification factor: %s", e)
        raise SystemExit(1)
    report.print_results(results, out)


def main(argv=None):
    options = Options()
    try:
        options.parseOptions(argv)
    except usage.UsageError as e:
        sys.stderr.write("{}\n{}\n".format(options, e))
        sys.exit(2)

    logging.basicConfig(
        level=logging.DEBUG if options['verbose'] else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    task.react(run, (options,))


if __name__ == '__main__':
    main()
