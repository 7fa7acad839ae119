import json
from datetime import datetime, timedelta, timezone
from unittest import mock

import pytest

from faasd.journal_logs import (
    JournalRequester,
    LogMessage,
    LogParseError,
    LogRequest,
    build_command,
    iter_messages,
    parse_entry,
)

RAW_ENTRY = (
    '{ "__CURSOR" : "s=71c4550142d14ace8e2959e3540cc15c;i=133c;b=44864010f0d94baba7b6bf8019f82a56;'
    'm=2945cd3;t=5a00d4eb59180;x=8ed47f7f9b3d798", "__REALTIME_TIMESTAMP" : "1583353899094400", '
    '"__MONOTONIC_TIMESTAMP" : "43277523", "_BOOT_ID" : "44864010f0d94baba7b6bf8019f82a56", '
    '"SYSLOG_IDENTIFIER" : "openfaas-fn:nodeinfo", "_PID" : "2254", '
    '"MESSAGE" : "2020/03/04 20:31:39 POST / - 200 OK - ContentLength: 83", '
    '"_SOURCE_REALTIME_TIMESTAMP" : "1583353899094372" }'
)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def test_parse_entry():
    entry = parse_entry(json.loads(RAW_ENTRY))
    assert entry.name == "nodeinfo"
    assert entry.namespace == "openfaas-fn"
    assert entry.text == "2020/03/04 20:31:39 POST / - 200 OK - ContentLength: 83"
    assert entry.timestamp == EPOCH + timedelta(microseconds=1583353899094400)
    assert entry.instance == "2254"


def test_parse_entry_invalid_identifier():
    with pytest.raises(LogParseError, match="invalid SYSLOG_IDENTIFIER"):
        parse_entry({"SYSLOG_IDENTIFIER": "nodeinfo", "__REALTIME_TIMESTAMP": "1"})


def test_parse_entry_missing_timestamp():
    with pytest.raises(LogParseError, match="missing required field __REALTIME_TIMESTAMP"):
        parse_entry({"SYSLOG_IDENTIFIER": "openfaas-fn:nodeinfo"})


def test_parse_entry_invalid_timestamp():
    with pytest.raises(LogParseError, match="invalid timestamp"):
        parse_entry({"SYSLOG_IDENTIFIER": "openfaas-fn:nodeinfo", "__REALTIME_TIMESTAMP": "abc"})


def test_build_command():
    since = datetime(2020, 3, 4, 20, 31, 39, tzinfo=timezone.utc)
    request = LogRequest(name="loggyfunc", namespace="spacetwo", follow=True, since=since, tail=5)
    args = build_command(request, now=since + timedelta(seconds=1))
    command = " ".join(args)
    assert args[0] == "journalctl"
    expected = (
        "--utc --no-pager --output=json --identifier=spacetwo:loggyfunc "
        f"--since={since.strftime('%Y-%m-%d %H:%M:%S')} --follow --lines=5"
    )
    assert command.endswith(expected)


def test_build_command_defaults():
    now = datetime(2020, 3, 4, 20, 31, 39, tzinfo=timezone.utc)
    args = build_command(LogRequest(name="fn"), now=now)
    assert "--identifier=openfaas-fn:fn" in args
    assert "--follow" not in args
    assert not any(arg.startswith("--lines=") for arg in args)
    window_start = (now - timedelta(minutes=5)).strftime("%Y-%m-%d %H:%M:%S")
    assert args[-1] == f"--since={window_start}"


def test_build_command_ignores_future_since():
    now = datetime(2020, 3, 4, 20, 31, 39, tzinfo=timezone.utc)
    future = now + timedelta(hours=1)
    args = build_command(LogRequest(name="fn", since=future), now=now)
    window_start = (now - timedelta(minutes=5)).strftime("%Y-%m-%d %H:%M:%S")
    assert f"--since={window_start}" in args


def test_iter_messages_yields_each_entry():
    lines = [RAW_ENTRY + "\n", "\n", RAW_ENTRY + "\n"]
    messages = list(iter_messages(lines))
    assert len(messages) == 2
    assert all(isinstance(m, LogMessage) and m.name == "nodeinfo" for m in messages)


def test_iter_messages_stops_on_bad_json():
    messages = list(iter_messages([RAW_ENTRY, "{not json", RAW_ENTRY]))
    assert len(messages) == 1


def test_iter_messages_stops_on_bad_entry():
    bad = json.dumps({"SYSLOG_IDENTIFIER": "broken", "__REALTIME_TIMESTAMP": "1"})
    messages = list(iter_messages([bad, RAW_ENTRY]))
    assert messages == []


def test_query_without_journalctl():
    with mock.patch("faasd.journal_logs.shutil.which", return_value=None):
        with pytest.raises(FileNotFoundError, match="can not find journalctl"):
            JournalRequester().query(LogRequest(name="fn"))