from deepticker.config.secrets import SettingsSecretStore, StaticSecretStore, is_usable_key
from deepticker.config.settings import Settings


def test_placeholder_keys_are_rejected():
    assert not is_usable_key("")
    assert not is_usable_key("   ")
    assert not is_usable_key("REPLACE_WITH_KEY")
    assert not is_usable_key("your_api_key")
    assert not is_usable_key("MY_PLACEHOLDER_KEY")
    assert is_usable_key("abc123")


def test_settings_store_reads_provider_fields():
    store = SettingsSecretStore(Settings(alpha_vantage_api_key=" real-key ", rapidapi_key="your_key"))

    assert store.get_api_key("alpha_vantage") == "real-key"
    assert store.get_api_key("rapidapi") is None
    assert store.get_api_key("yahoo") is None


def test_static_store():
    store = StaticSecretStore({"rapidapi": "k"})
    assert store.get_api_key("rapidapi") == "k"
    assert store.get_api_key("alpha_vantage") is None
