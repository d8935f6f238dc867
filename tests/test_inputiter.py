import pytest

from critscore.inputiter import new_input


def test_single_url():
    want = "https://github.com/ossf/criticality_score"
    with new_input([want]) as it:
        assert list(it) == [want]


def test_multiple_urls():
    want = [
        "https://github.com/ossf/criticality_score",
        "https://github.com/ossf/scorecard",
    ]
    with new_input(want) as it:
        assert list(it) == want


def test_missing_file_is_url(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    want = "this/is/a/file/that/doesnt/exists"
    with new_input([want]) as it:
        assert list(it) == [want]


def test_url_file(tmp_path):
    path = tmp_path / "urls.txt"
    want = [
        "https://github.com/ossf/criticality_score",
        "https://github.com/ossf/scorecard",
    ]
    path.write_text("".join(url + "\n" for url in want), encoding="utf-8")
    with new_input([str(path)]) as it:
        assert list(it) == want


def test_invalid_url(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(FileNotFoundError):
        new_input([":this.is/not/a/url"])


def test_directory_is_an_error(tmp_path):
    with pytest.raises(OSError):
        new_input([str(tmp_path)])


def test_file_with_crlf_lines(tmp_path):
    path = tmp_path / "urls.txt"
    path.write_bytes(b"https://github.com/ossf/scorecard\r\n")
    with new_input([str(path)]) as it:
        assert list(it) == ["https://github.com/ossf/scorecard"]