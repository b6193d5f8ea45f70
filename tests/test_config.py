from pathlib import Path

import yaml

from config.config import CONFIG_ENV_VAR, RegistrarConfig, SystemConfig, ZKConfig, load_config, save_config


def test_missing_file_gives_defaults(tmp_path):
    config = load_config(tmp_path / "absent.yaml")
    assert config.zk_config.backend == "simulated"
    assert config.registrar_config.verify_timeout == 30.0
    assert config.log_level == "INFO"


def test_save_and_load_round_trip(tmp_path):
    path = tmp_path / "voting.yaml"
    original = SystemConfig(
        zk_config=ZKConfig(simulated_key_hex="cd" * 32, proof_timeout=5),
        registrar_config=RegistrarConfig(verify_timeout=2.5, verify_workers=2),
        log_dir=tmp_path / "logs",
    )
    save_config(original, path)

    loaded = load_config(path)
    assert loaded.zk_config.simulated_key_hex == "cd" * 32
    assert loaded.zk_config.proof_timeout == 5
    assert loaded.zk_config.build_dir == Path("circuits/build")
    assert loaded.registrar_config == original.registrar_config
    assert loaded.log_dir == tmp_path / "logs"


def test_environment_variable_names_file(tmp_path, monkeypatch):
    path = tmp_path / "from_env.yaml"
    path.write_text("registrar:\n  verify_workers: 7\nenable_debug_mode: true\n")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

    config = load_config()
    assert config.registrar_config.verify_workers == 7
    assert config.log_level == "DEBUG"


def test_invalid_file_falls_back_to_defaults(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("zk_proofs:\n  backend: plonk\n")
    assert load_config(path).zk_config.backend == "simulated"

    path.write_text("zk_proofs: [unclosed\n")
    assert load_config(path).registrar_config.verify_workers == 4


def test_artifact_paths():
    config = ZKConfig(build_dir="build", circuit_name="vote")
    assert config.wasm_file == Path("build/vote_js/vote.wasm")
    assert config.zkey_file == Path("build/vote_final.zkey")
    assert config.vkey_file == Path("build/verification_key.json")


def test_saved_file_holds_only_settings_the_system_reads(tmp_path):
    path = tmp_path / "voting.yaml"
    save_config(SystemConfig(), path)
    data = yaml.safe_load(path.read_text())

    assert set(data['registrar']) == {'verify_timeout', 'verify_workers'}
    assert 'curve' not in data['zk_proofs']


def test_unknown_keys_are_ignored(tmp_path):
    path = tmp_path / "legacy.yaml"
    path.write_text("registrar:\n  host: 0.0.0.0\n  port: 7000\n  verify_timeout: 4\n")
    assert load_config(path).registrar_config == RegistrarConfig(verify_timeout=4)
