from mail_relay.prometheus import RelayMetrics


def test_relay_metrics_counters_and_gauge():
    metrics = RelayMetrics()

    metrics.observe_request("sent")
    metrics.observe_request("rate_limited")
    metrics.observe_request("")
    metrics.inc_sent()
    metrics.inc_transport_error()
    metrics.inc_rate_limited()
    metrics.set_tracked_identities(3)

    output = metrics.generate_latest()
    assert b'mail_relay_requests_total{outcome="sent"} 1.0' in output
    assert b'mail_relay_requests_total{outcome="unknown"} 1.0' in output
    assert b"mail_relay_sent_total 1.0" in output
    assert b"mail_relay_transport_errors_total 1.0" in output
    assert b"mail_relay_rate_limited_total 1.0" in output
    assert b"mail_relay_tracked_identities 3.0" in output


def test_separate_instances_use_separate_registries():
    first = RelayMetrics()
    second = RelayMetrics()
    first.inc_sent()
    assert b"mail_relay_sent_total 0.0" in second.generate_latest()
