import pytest

from portal_guard.security.blocking import BLOCK_LONG, BLOCK_SHORT
from portal_guard.security.errors import IPBlocked

IP = "198.51.100.23"
BROWSER = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/126.0 Safari/537.36"


def test_new_address_is_open(defense):
    status = defense.check_ip_gate(IP)
    assert status.blocked is False
    assert status.risk_score == 0
    assert status.remaining_seconds is None


def test_six_rapid_request_reports_block_for_two_hours(defense):
    for _ in range(5):
        defense.report_outcome(IP, "rapid_requests")
    assert defense.check_ip_gate(IP).blocked is False

    defense.report_outcome(IP, "rapid_requests")
    status = defense.check_ip_gate(IP)
    assert status.blocked is True
    assert status.risk_score == 60
    assert status.remaining_seconds == BLOCK_LONG


def test_failed_captcha_crossing_threshold_blocks(defense, clock):
    defense.profiles.get_or_create(IP).risk_score = 55
    defense.report_outcome(IP, "failed_captcha")

    profile = defense.profiles.get(IP)
    assert profile.risk_score == 70
    assert profile.block_expires == clock.now + BLOCK_LONG

    clock.advance(BLOCK_LONG)
    status = defense.check_ip_gate(IP)
    assert status.blocked is False
    assert status.risk_score == 50


def test_blocked_request_is_not_counted(defense, clock):
    defense.begin_request(IP, BROWSER)
    for _ in range(6):
        defense.report_outcome(IP, "rapid_requests")
    before = defense.profiles.get(IP).request_count

    with pytest.raises(IPBlocked) as exc_info:
        defense.enforce_gate(IP, BROWSER)
    assert exc_info.value.remaining_seconds == BLOCK_LONG
    assert exc_info.value.risk_score == 60
    assert defense.profiles.get(IP).request_count == before == 1


def test_remaining_seconds_counts_down(defense, clock):
    for _ in range(6):
        defense.report_outcome(IP, "rapid_requests")
    clock.advance(1000.5)
    assert defense.check_ip_gate(IP).remaining_seconds == BLOCK_LONG - 1000


def test_tool_user_agent_blocked_on_third_request(defense):
    assert defense.begin_request(IP, "curl/8.4.0").risk_score == 20
    assert defense.begin_request(IP, "curl/8.4.0").blocked is False
    status = defense.begin_request(IP, "curl/8.4.0")
    assert status.blocked is True
    assert status.risk_score == 60
    assert "suspicious_user_agent" in defense.profiles.get(IP).suspicious_patterns


def test_browser_user_agent_is_not_scored(defense):
    for _ in range(20):
        defense.begin_request(IP, BROWSER)
    profile = defense.profiles.get(IP)
    assert profile.request_count == 20
    assert profile.risk_score == 0


def test_failed_attempts_block_below_score_threshold(defense, clock):
    for _ in range(4):
        defense.track_failed_attempt(IP, "login_failed")
    assert defense.check_ip_gate(IP).blocked is False

    defense.track_failed_attempt(IP, "login_failed")
    status = defense.check_ip_gate(IP)
    assert status.blocked is True
    assert status.risk_score == 25
    assert status.remaining_seconds == BLOCK_SHORT
    assert defense.profiles.get(IP).failed_attempts == 0


def test_wrong_captcha_answers_feed_the_profile(defense):
    issued = defense.request_challenge(defense.signals_for(IP, BROWSER))
    assert defense.submit_challenge_answer(issued.id, "-1", ip=IP) is False

    profile = defense.profiles.get(IP)
    assert profile.failed_attempts == 1
    assert profile.risk_score == 15
    assert "failed_captcha" in profile.suspicious_patterns


def test_anonymous_captcha_failure_is_not_attributed(defense):
    issued = defense.request_challenge(defense.signals_for(IP, BROWSER))
    assert defense.submit_challenge_answer(issued.id, "-1") is False
    assert defense.profiles.get(IP).risk_score == 0


def test_correct_captcha_answer(defense):
    issued = defense.request_challenge(defense.signals_for(IP, BROWSER))
    answer = defense.challenges.peek(issued.id).answer
    assert defense.submit_challenge_answer(issued.id, answer, ip=IP) is True
    assert defense.profiles.get(IP).risk_score == 0


def test_signals_use_recent_window(defense, clock):
    for _ in range(11):
        defense.begin_request(IP, BROWSER)
    signals = defense.signals_for(IP, BROWSER)
    assert signals.recent_request_count == 11
    assert defense.request_challenge(signals).difficulty == 3

    clock.advance(61)
    signals = defense.signals_for(IP, BROWSER)
    assert signals.recent_request_count == 0
    assert defense.request_challenge(signals).difficulty == 1


def test_profile_snapshot(defense, clock):
    assert defense.profile_snapshot(IP) is None

    defense.begin_request(IP, BROWSER)
    defense.report_outcome(IP, "form_spam")
    snapshot = defense.profile_snapshot(IP)
    assert snapshot["ip"] == IP
    assert snapshot["request_count"] == 1
    assert snapshot["risk_score"] == 30
    assert snapshot["risk_level"] == "low"
    assert snapshot["is_blocked"] is False
    assert snapshot["remaining_seconds"] == 0
    assert snapshot["suspicious_patterns"] == ["form_spam"]


def test_security_report(defense, clock):
    for _ in range(6):
        defense.report_outcome("10.0.0.1", "rapid_requests")
    defense.report_outcome("10.0.0.2", "form_spam")
    defense.report_outcome("10.0.0.2", "form_spam")
    defense.begin_request("10.0.0.3", BROWSER)
    defense.request_challenge(defense.signals_for("10.0.0.3", BROWSER))

    report = defense.security_report()
    assert report["total_ips"] == 3
    assert report["blocked_ips"] == 2
    assert report["high_risk_ips"] == 2
    assert report["recent_violations"] == 2
    assert report["top_threats"] == ["rapid_requests", "form_spam"]
    assert report["outstanding_challenges"] == 1

    clock.advance(60 * 60)
    assert defense.security_report()["recent_violations"] == 0


def test_sweep_challenges(defense, clock):
    kept = defense.request_challenge(defense.signals_for(IP, BROWSER))
    clock.advance(500)
    defense.request_challenge(defense.signals_for(IP, BROWSER))
    clock.advance(200)
    assert defense.sweep_challenges() == 1
    assert kept.id not in defense.challenges
    assert len(defense.challenges) == 1


def test_sweep_profiles_keeps_risky_and_blocked(defense, clock):
    defense.begin_request("10.0.0.1", BROWSER)
    defense.report_outcome("10.0.0.2", "form_spam")
    for _ in range(8):
        defense.report_outcome("10.0.0.3", "form_spam")

    clock.advance(3 * 24 * 60 * 60 + 1)
    assert defense.sweep_profiles() == 1
    assert defense.profiles.get("10.0.0.1") is None
    assert defense.profiles.get("10.0.0.2") is not None
    # the extended block lapsed and decayed, but the score stays above the floor
    assert defense.profiles.get("10.0.0.3").is_blocked is False
    assert defense.sweep() == (0, 0)
