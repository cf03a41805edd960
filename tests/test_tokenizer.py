from sitegen.export.tokenizer import tokenize


def test_tokenize_strips_punctuation_and_short_words():
    assert tokenize("Hello, World! 2024", 3) == ["hello", "world", "2024"]


def test_default_min_word_length_is_two():
    assert tokenize("a bc def") == ["bc", "def"]


def test_non_ascii_letters_are_dropped():
    # "C++" loses its symbols and the single "c" is too short
    assert tokenize("Pokémon C++") == ["pokmon"]


def test_splits_on_any_whitespace():
    assert tokenize("one\ttwo\n  three", 1) == ["one", "two", "three"]


def test_empty_and_non_string_input():
    assert tokenize("") == []
    assert tokenize(None) == []
    assert tokenize(2024) == []
    assert tokenize(["apple"]) == []


def test_punctuation_only_yields_nothing():
    assert tokenize("!!! ... ???", 1) == []
