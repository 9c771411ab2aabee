import pytest

from waku_messenger.config import DEFAULT_NODE_URL, WakuConfig, validate_config
from waku_messenger.errors import ConfigurationError

TEMPLATE = "/chroma/1/PLACEHOLDER/proto"


class TestFromEnv:
    def test_defaults(self):
        config = WakuConfig.from_env({})
        assert config.content_topic is None
        assert config.topic is None
        assert config.ping_count == 20
        assert config.static_peers == []
        assert config.node_url == DEFAULT_NODE_URL
        assert config.ephemeral_bytes == 16
        assert config.sweep_interval is None

    def test_reads_values(self):
        config = WakuConfig.from_env({
            "WAKU_CONTENT_TOPIC": TEMPLATE,
            "WAKU_TOPIC": "intents",
            "WAKU_PING_COUNT": "5",
            "WAKU_STATIC_PEERS": "/ip4/10.0.0.1/tcp/60000/p2p/a, /ip4/10.0.0.2/tcp/60000/p2p/b,,",
            "WAKU_NODE_URL": "http://node:8645",
            "WAKU_SWEEP_INTERVAL": "30",
        })
        assert config.content_topic == TEMPLATE
        assert config.topic == "intents"
        assert config.ping_count == 5
        assert config.static_peers == ["/ip4/10.0.0.1/tcp/60000/p2p/a", "/ip4/10.0.0.2/tcp/60000/p2p/b"]
        assert config.node_url == "http://node:8645"
        assert config.sweep_interval == 30.0

    def test_blank_peer_list_is_empty(self):
        assert WakuConfig.from_env({"WAKU_STATIC_PEERS": "  "}).static_peers == []
        assert WakuConfig(static_peers=",").static_peers == []

    @pytest.mark.parametrize("raw", ["abc", "0", ""])
    def test_unusable_ping_count_falls_back_to_default(self, raw):
        assert WakuConfig.from_env({"WAKU_PING_COUNT": raw}).ping_count == 20

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("WAKU_TOPIC", "from-env")
        assert WakuConfig.from_env().topic == "from-env"


class TestValidation:
    def test_template_needs_one_placeholder(self):
        with pytest.raises(ConfigurationError) as exc:
            validate_config({"content_topic": "/chroma/1/intents/proto"})
        assert "content_topic" in str(exc.value)
        assert exc.value.code == "configuration_error"

    def test_errors_are_collected(self):
        with pytest.raises(ConfigurationError) as exc:
            validate_config({"ping_count": -1, "poll_interval": 0})
        assert len(exc.value.details["errors"]) == 2

    def test_require_default_topic(self):
        WakuConfig(content_topic=TEMPLATE, topic="intents").require_default_topic()
        with pytest.raises(ConfigurationError):
            WakuConfig(content_topic=TEMPLATE).require_default_topic()
        with pytest.raises(ConfigurationError):
            WakuConfig(topic="intents").require_default_topic()
