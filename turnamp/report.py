"""Summaries of amplification measurements
"""
from collections import namedtuple, OrderedDict
import sys


Summary = namedtuple('Summary', [
    'count',
    'request_size',
    'response_size',
    'amplification_factor',
    'max_amplification_factor',
    'nonce_count',
    ])


def summarize(results):
    """Average the results, or None when there is nothing to average
    """
    results = list(results)
    if not results:
        return None
    count = len(results)
    return Summary(
        count=count,
        request_size=sum(r.request_size for r in results) / count,
        response_size=sum(r.response_size for r in results) / count,
        amplification_factor=sum(r.amplification_factor for r in results) / count,
        max_amplification_factor=max(r.amplification_factor for r in results),
        nonce_count=sum(1 for r in results if r.has_nonce))


def breakdown(results):
    """Group results by (response type, error code), in order of appearance
    """
    groups = OrderedDict()
    for result in results:
        key = result.response_type, result.error_code
        groups.setdefault(key, []).append(result)
    return groups


def print_results(results, out=None):
    if out is None:
        out = sys.stdout
    results = list(results)
    summary = summarize(results)
    if summary is None:
        out.write("No successful results to analyze.\n")
        return

    out.write("\nResults Summary\n")
    out.write("===============\n")
    out.write("Successful requests: {}\n\n".format(summary.count))

    for (response_type, error_code), group in breakdown(results).items():
        group_summary = summarize(group)
        label = response_type
        if error_code is not None:
            label = "{} ({})".format(response_type, error_code)
        out.write("{}: {} responses, {:.1f} bytes, {:.2f}x\n".format(
            label, group_summary.count, group_summary.response_size,
            group_summary.amplification_factor))
    out.write("Responses with NONCE:     {}\n\n".format(summary.nonce_count))

    out.write("Overall Statistics:\n")
    out.write("===================\n")
    out.write("Average Request Size:     {:.1f} bytes\n".format(summary.request_size))
    out.write("Average Response Size:    {:.1f} bytes\n".format(summary.response_size))
    out.write("Overall Amplification:    {:.2f}x\n".format(summary.amplification_factor))
    out.write("Maximum Amplification:    {:.2f}x\n".format(summary.max_amplification_factor))
