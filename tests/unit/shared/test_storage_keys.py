from shared.constants import StorageKeys


def test_all_keys_are_distinct():
    keys = StorageKeys.all_keys()
    assert len(keys) == len(set(keys)) == 3


def test_prefixed():
    assert StorageKeys.prefixed("k", "") == "k"
    assert StorageKeys.prefixed("k", "ark") == "ark:k"
    assert StorageKeys.prefixed("k", "ark:") == "ark:k"
