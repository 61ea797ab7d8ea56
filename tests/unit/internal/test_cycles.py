from __future__ import annotations

from typing import NamedTuple

from dix._internal.cycles import CycleDetector
from dix._internal.providers import ProviderInspector, ProvidersRegistry


class A:
    pass


class B:
    pass


class C:
    pass


class D:
    pass


class Pair(NamedTuple):
    b: B
    c: C


def provide_a(b: B) -> A:
    return A()


def provide_b(c: C) -> B:
    return B()


def provide_c(a: A) -> C:
    return C()


def provide_c_from_d(d: D) -> C:
    return C()


def provide_d() -> D:
    return D()


def provide_a_from_pair(pair: Pair) -> A:
    return A()


def provide_b_from_list(items: list[A]) -> B:
    return B()


def _detector(*providers: object) -> CycleDetector:
    registry = ProvidersRegistry()
    inspector = ProviderInspector()
    for provider in providers:
        registry.add(inspector.inspect(provider))  # type: ignore[arg-type]
    return CycleDetector(registry)


def test_acyclic_graph_has_no_cycle() -> None:
    detector = _detector(provide_d, provide_c_from_d, provide_b, provide_a)

    assert detector.find_cycle() == []


def test_build_graph_lists_consumed_types_per_provided_type() -> None:
    detector = _detector(provide_d, provide_c_from_d, provide_b, provide_a_from_pair)

    assert detector.build_graph() == {
        D: [],
        C: [D],
        B: [C],
        A: [B, C],
    }


def test_three_member_cycle_is_reported_once() -> None:
    detector = _detector(provide_a, provide_b, provide_c)

    cycle = detector.find_cycle()

    assert cycle == [A, B, C]


def test_dead_end_branch_is_not_part_of_the_cycle() -> None:
    detector = _detector(provide_a, provide_b, provide_c_from_d, provide_d, provide_c)

    cycle = detector.find_cycle()

    assert set(cycle) == {A, B, C}
    assert D not in cycle


def test_record_inputs_contribute_field_types() -> None:
    detector = _detector(provide_a_from_pair, provide_b, provide_c)

    assert set(detector.find_cycle()) == {A, B, C}


def test_listed_inputs_contribute_their_element_type() -> None:
    detector = _detector(provide_a, provide_b_from_list)

    assert detector.find_cycle() == [A, B]
