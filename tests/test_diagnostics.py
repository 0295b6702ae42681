"""Tests for diagnostic ids, messages and severities."""

from apicompat.classifier import RULES, ChangeCategory, Compatibility, ValidationMode, classify
from apicompat.diagnostics import (
    DIAGNOSTIC_NUMBERS,
    Severity,
    build_diagnostics,
    diagnostic_id,
    known_ids,
    render_message,
)
from apicompat.differ import ChangeKind, Difference, diff_surfaces
from apicompat.surface import Member, MemberKind, Parameter, Surface


def method(name, *types, names=None, stable=True):
    names = names or [f"p{i}" for i in range(len(types))]
    return Member(name=name, kind=MemberKind.METHOD, declaring_type="net.Client",
                  parameters=[Parameter(n, t) for n, t in zip(names, types)],
                  return_type="None", stable=stable)


def diagnose(old_members, new_members, **kwargs):
    old = Surface("net", "1.0.0", old_members)
    new = Surface("net", "2.0.0", new_members)
    classified = [(d, classify(d, old, new)) for d in diff_surfaces(old, new)]
    return build_diagnostics(classified, old.version, new.version, **kwargs)


def test_every_breaking_category_has_a_stable_id():
    for category, (binary, source) in RULES.items():
        if Compatibility.BREAKING in (binary, source):
            assert category in DIAGNOSTIC_NUMBERS, category


def test_ids_are_unique_and_prefixed():
    ids = known_ids()
    assert len(ids) == len(set(ids))
    assert diagnostic_id(ChangeCategory.MEMBER_REMOVED) == "APICOMPAT0001"
    assert diagnostic_id(ChangeCategory.MEMBER_REMOVED, prefix="CP") == "CP0001"


def test_removed_member_message():
    diff = Difference(ChangeKind.REMOVED, baseline=method("connect", "str"))
    message = render_message(ChangeCategory.MEMBER_REMOVED, diff, "1.0.0", "2.0.0")
    assert message == (
        "The method 'net.Client.connect(str)' exists in the previous version (1.0.0) "
        "but no longer exists in the current version (2.0.0). This is a breaking change."
    )


def test_removed_member_diagnostic():
    [diag] = diagnose([method("connect", "str")], [])
    assert diag.id == "APICOMPAT0001"
    assert diag.severity is Severity.ERROR
    assert diag.target == "net.Client.connect(str)"
    assert diag.key == ("APICOMPAT0001", "net.Client.connect(str)")
    assert diag.format().startswith("error: APICOMPAT0001: The method")


def test_compatible_changes_produce_no_diagnostics():
    assert diagnose([method("connect", "str")], [method("connect", "str"), method("close")]) == []


def test_source_only_breaks_depend_on_mode():
    old = [method("send", "bytes", names=["data"])]
    new = [method("send", "bytes", names=["payload"])]
    [diag] = diagnose(old, new, mode=ValidationMode.FULL)
    assert diag.id == "APICOMPAT0009"
    assert "(data)" in diag.message and "(payload)" in diag.message
    assert diagnose(old, new, mode=ValidationMode.BINARY) == []


def test_severity_override():
    [diag] = diagnose([method("connect", "str")], [],
                      overrides={"APICOMPAT0001": Severity.WARNING})
    assert diag.severity is Severity.WARNING


def test_disabled_diagnostics_are_kept_with_none_severity():
    [diag] = diagnose([method("connect", "str")], [],
                      overrides={"APICOMPAT0001": Severity.NONE})
    assert diag.severity is Severity.NONE


def test_unstable_members_downgrade_to_warning():
    [diag] = diagnose([method("connect", "str", stable=False)], [])
    assert diag.severity is Severity.WARNING
    [strict] = diagnose([method("connect", "str", stable=False)], [], downgrade_unstable=False)
    assert strict.severity is Severity.ERROR


def test_custom_prefix():
    [diag] = diagnose([method("connect", "str")], [], prefix="NETAPI")
    assert diag.id == "NETAPI0001"


def test_to_dict():
    [diag] = diagnose([method("connect", "str")], [])
    data = diag.to_dict()
    assert data["id"] == "APICOMPAT0001"
    assert data["severity"] == "error"
    assert data["classification"]["category"] == "member-removed"
    assert data["classification"]["binary"] == "breaking"
