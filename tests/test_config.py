import pytest
from pydantic import ValidationError

from projloader import Alignment, LoaderConfig, field_set
from projloader.config import DEFAULT_CONFIG
from projloader.core.utils import as_field_set, get_db_session, record_value


def test_defaults():
    cfg = LoaderConfig.from_env({})
    assert cfg.alignment is Alignment.BY_KEY
    assert cfg.max_batch_size is None
    assert cfg.log_batches is False
    assert cfg.strict_fields is False


def test_from_env():
    cfg = LoaderConfig.from_env({
        'PROJLOADER_ALIGNMENT': 'Positional',
        'PROJLOADER_MAX_BATCH_SIZE': '50',
        'PROJLOADER_LOG_BATCHES': 'yes',
        'PROJLOADER_STRICT_FIELDS': '0',
        'PROJLOADER_TEST_DATABASE_URL': 'sqlite+aiosqlite:///:memory:',
        'UNRELATED': '1',
    })
    assert cfg == LoaderConfig(
        alignment=Alignment.POSITIONAL, max_batch_size=50, log_batches=True, strict_fields=False,
    )


def test_from_process_environment(monkeypatch):
    monkeypatch.setenv('PROJLOADER_STRICT_FIELDS', 'true')
    monkeypatch.setenv('PROJLOADER_MAX_BATCH_SIZE', '25')
    monkeypatch.delenv('PROJLOADER_ALIGNMENT', raising=False)
    cfg = LoaderConfig()
    assert cfg.strict_fields is True
    assert cfg.max_batch_size == 25
    assert LoaderConfig.from_env() == cfg


def test_keyword_arguments_override_environment(monkeypatch):
    monkeypatch.setenv('PROJLOADER_LOG_BATCHES', 'false')
    assert LoaderConfig(log_batches=True).log_batches is True


@pytest.mark.parametrize('env', [
    {'PROJLOADER_ALIGNMENT': 'sideways'},
    {'PROJLOADER_MAX_BATCH_SIZE': 'many'},
    {'PROJLOADER_MAX_BATCH_SIZE': '0'},
    {'PROJLOADER_LOG_BATCHES': 'sometimes'},
])
def test_from_env_invalid(env):
    with pytest.raises(ValidationError):
        LoaderConfig.from_env(env)


def test_invalid_keyword_rejected():
    with pytest.raises(ValidationError):
        LoaderConfig(max_batch_size=-1)


def test_config_is_frozen():
    with pytest.raises(ValidationError):
        DEFAULT_CONFIG.log_batches = True


@pytest.mark.parametrize('value, expected', [
    (None, frozenset()),
    ('vin', frozenset({'vin'})),
    (['vin', 'make', 'vin'], frozenset({'vin', 'make'})),
    (frozenset({'a'}), frozenset({'a'})),
    ({'a': 1}.keys(), frozenset({'a'})),
])
def test_as_field_set(value, expected):
    assert as_field_set(value) == expected


@pytest.mark.parametrize('value', [{'vin': True}, 42, ['vin', 3], ['']])
def test_as_field_set_rejects(value):
    with pytest.raises(TypeError):
        as_field_set(value)


def test_field_set():
    assert field_set('a', 'b') == frozenset({'a', 'b'})
    with pytest.raises(TypeError):
        field_set('a', None)


def test_record_value_shapes():
    class Obj:
        vin = 'V1'

    assert record_value({'vin': 'V1'}, 'vin') == 'V1'
    assert record_value(Obj(), 'vin') == 'V1'
    assert record_value({}, 'vin', None) is None
    with pytest.raises(KeyError):
        record_value(Obj(), 'make')


def test_get_db_session_from_context():
    class Info:
        context = {'db_session': 'S'}

    class Ctx:
        session = 'T'

    assert get_db_session(Info()) == 'S'
    assert get_db_session(Ctx()) == 'T'
    assert get_db_session({}) is None
