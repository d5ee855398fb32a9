from app.utils.shuffle import new_seed, permute


def test_same_seed_and_salt_give_same_order():
    items = list(range(20))
    assert permute(items, 1234, "questions") == permute(items, 1234, "questions")

def test_permutation_keeps_every_item():
    items = list(range(20))
    shuffled = permute(items, 99, "questions")
    assert sorted(shuffled) == items
    assert items == list(range(20))

def test_salt_changes_the_order():
    items = list(range(30))
    assert permute(items, 42, "questions") != permute(items, 42, "17")

def test_new_seed_is_positive():
    for _ in range(50):
        assert new_seed() > 0
