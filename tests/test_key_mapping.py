import threading

import pytest

from migration_toolkit.errors import KeyMappingConflictError
from migration_toolkit.key_mapping import EntityKind, KeyTranslationContext


def test_translate_unmigrated_id_returns_none():
    context = KeyTranslationContext()
    assert context.translate(EntityKind.CONSENT, 7) is None


def test_set_mapping_then_translate():
    context = KeyTranslationContext()
    context.set_mapping(EntityKind.CONSENT, 7, 42)
    assert context.translate(EntityKind.CONSENT, 7) == 42
    # kinds are separate namespaces
    assert context.translate(EntityKind.CONTACT, 7) is None


def test_translate_allow_null_passes_none_through():
    context = KeyTranslationContext()
    context.set_mapping(EntityKind.RESOURCE, 1, 10)
    assert context.translate_allow_null(EntityKind.RESOURCE, None) is None
    assert context.translate_allow_null(EntityKind.RESOURCE, 1) == 10
    assert context.translate_allow_null(EntityKind.RESOURCE, 2) is None


def test_setting_same_value_twice_is_a_noop():
    context = KeyTranslationContext()
    context.set_mapping(EntityKind.FORM, 3, 30)
    context.set_mapping(EntityKind.FORM, 3, 30)
    assert len(context) == 1


def test_remapping_to_a_different_id_is_rejected():
    context = KeyTranslationContext()
    context.set_mapping(EntityKind.FORM, 3, 30)
    with pytest.raises(KeyMappingConflictError):
        context.set_mapping(EntityKind.FORM, 3, 31)
    assert context.translate(EntityKind.FORM, 3) == 30


def test_explicit_mappings_are_seeded_and_exposed():
    context = KeyTranslationContext({"site": {1: 5, 2: 6}})
    assert context.translate(EntityKind.SITE, 2) == 6
    assert context.require_explicit_mapping(EntityKind.SITE) == {1: 5, 2: 6}
    assert context.require_explicit_mapping(EntityKind.CONSENT) == {}


def test_explicit_mapping_copy_is_detached():
    context = KeyTranslationContext({"site": {1: 1}})
    sites = context.require_explicit_mapping(EntityKind.SITE)
    sites[9] = 9
    assert 9 not in context.require_explicit_mapping(EntityKind.SITE)


def test_items_lists_pairs_of_one_kind_sorted():
    context = KeyTranslationContext()
    context.set_mapping(EntityKind.CONTACT, 5, 50)
    context.set_mapping(EntityKind.CONTACT, 1, 10)
    context.set_mapping(EntityKind.CONSENT, 1, 99)
    assert context.items(EntityKind.CONTACT) == [(1, 10), (5, 50)]


def test_concurrent_writers_of_different_kinds():
    context = KeyTranslationContext()

    def write(kind):
        for i in range(500):
            context.set_mapping(kind, i, i + 1)

    threads = [
        threading.Thread(target=write, args=(kind,))
        for kind in (EntityKind.CONTACT, EntityKind.CONSENT, EntityKind.FORM)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(context) == 1500
    assert context.translate(EntityKind.CONSENT, 499) == 500
