import importlib

from config.settings import Settings, check_readiness, parse_block_routes


def test_readiness_reports_missing_names():
    s = Settings()
    s.dify_api_key = None
    s.chatfuel_bot_id = "bot"
    s.chatfuel_token = None
    s.chatfuel_answer_block_id = ""

    report = check_readiness(s)

    assert report.missing_upstream == ["DIFY_API_KEY"]
    assert report.missing_delivery == ["CHATFUEL_TOKEN", "CHATFUEL_ANSWER_BLOCK_ID"]
    assert not report.upstream_ready
    assert not report.ready


def test_readiness_all_present(settings):
    report = check_readiness(settings)
    assert report.ready


def test_parse_block_routes_skips_malformed_pairs():
    assert parse_block_routes("faq=1, sales = 2,broken,=3,x=") == {"faq": "1", "sales": "2"}
    assert parse_block_routes(None) == {}


def test_env_values_and_numeric_fallback(monkeypatch):
    monkeypatch.setenv("DIFY_API_KEY", "from-env")
    monkeypatch.setenv("SEGMENT_MAX_SIZE", "not-a-number")
    monkeypatch.setenv("DIFY_TIMEOUT_SECONDS", "30")

    import config.settings as settings_module

    settings_module = importlib.reload(settings_module)
    try:
        s = settings_module.Settings()
        assert s.dify_api_key == "from-env"
        assert s.segment_max_size == 1500
        assert s.dify_timeout == 30.0
    finally:
        monkeypatch.undo()
        importlib.reload(settings_module)
