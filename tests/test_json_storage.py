import json
import os
import threading

import pytest

from storage.json_storage import JsonStorage


class TestJsonStorage:
    def test_missing_key_reads_none(self, tmp_path):
        storage = JsonStorage(str(tmp_path))
        assert storage.read("transactions") is None

    def test_write_then_read(self, tmp_path):
        storage = JsonStorage(str(tmp_path / "nested"))
        storage.write("rates", {"THB": 124})
        assert storage.read("rates") == {"THB": 124}
        assert json.loads((tmp_path / "nested" / "rates.json").read_text(encoding="utf-8")) == {
            "THB": 124
        }

    def test_keys_are_independent(self, tmp_path):
        storage = JsonStorage(str(tmp_path))
        storage.write("rates", {"THB": 1})
        storage.write("calculator", {"years": 4})
        storage.write("rates", {"THB": 2})
        assert storage.read("calculator") == {"years": 4}
        assert storage.read("rates") == {"THB": 2}

    def test_corrupt_file_reads_none(self, tmp_path):
        (tmp_path / "transactions.json").write_text("{not json", encoding="utf-8")
        storage = JsonStorage(str(tmp_path))
        assert storage.read("transactions") is None

    def test_invalid_utf8_file_reads_none(self, tmp_path):
        (tmp_path / "transactions.json").write_bytes(b'[{"id": "\xff\xfe"}]')
        storage = JsonStorage(str(tmp_path))
        assert storage.read("transactions") is None

    def test_delete(self, tmp_path):
        storage = JsonStorage(str(tmp_path))
        storage.write("theme", {"dark": True})
        storage.delete("theme")
        storage.delete("theme")
        assert storage.read("theme") is None

    def test_no_temporary_files_left(self, tmp_path):
        storage = JsonStorage(str(tmp_path))
        storage.write("transactions", [{"id": "1"}])
        assert sorted(os.listdir(tmp_path)) == ["transactions.json"]

    @pytest.mark.parametrize("key", ["", "../escape", "a/b", "with space"])
    def test_rejects_unsafe_keys(self, tmp_path, key):
        with pytest.raises(ValueError, match="Invalid storage key"):
            JsonStorage(str(tmp_path)).read(key)

    def test_concurrent_writes_keep_valid_json(self, tmp_path):
        storage = JsonStorage(str(tmp_path))

        def worker(n: int) -> None:
            for i in range(20):
                storage.write("transactions", [{"worker": n, "i": i}])

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        data = storage.read("transactions")
        assert isinstance(data, list)
        assert data[0]["i"] == 19
