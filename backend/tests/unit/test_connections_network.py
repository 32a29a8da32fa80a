import random

from hommie.domain.connections import network
from hommie.domain.connections.models import ConnectionStatus, MutualConnection


def _mutual(make_profile, make_connection, neighbor_id, strength, interests=(), estate_name="Lekki Gardens"):
    neighbor = make_profile(neighbor_id, estate_name=estate_name)
    return MutualConnection(
        neighbor=neighbor,
        connection_with_current=make_connection("me", neighbor_id),
        connection_with_target=make_connection("them", neighbor_id),
        connection_strength=strength,
        shared_interests=tuple(interests),
    )


def test_analyze_empty_returns_zeroes():
    analysis = network.analyze([])
    assert analysis.total_mutual_connections == 0
    assert analysis.trustability_score == 0
    assert analysis.shared_network_density == 0.0
    assert analysis.connection_paths == []


def test_analyze_ten_strong_mutuals(make_profile, make_connection):
    mutuals = [
        _mutual(make_profile, make_connection, f"n{i:02d}", 80, interests=("football", "gardening"))
        for i in range(10)
    ]
    analysis = network.analyze(mutuals)
    assert analysis.total_mutual_connections == 10
    assert analysis.strong_connections == 10
    assert analysis.average_connection_strength == 80.0
    assert analysis.shared_network_density == 0.5
    assert analysis.network_overlap == 0.25
    assert analysis.trustability_score == 88
    assert len(analysis.connection_paths) == 3
    first = analysis.connection_paths[0]
    assert first.id == "path_1"
    assert first.path_type == "through_mutual"
    assert first.description == "Strong connection through football"
    assert first.common_interests == ["football", "gardening"]


def test_analyze_density_saturates_and_trustability_caps(make_profile, make_connection):
    mutuals = [_mutual(make_profile, make_connection, f"n{i:02d}", 95) for i in range(30)]
    analysis = network.analyze(mutuals)
    assert analysis.shared_network_density == 1.0
    assert analysis.network_overlap == 0.5
    assert analysis.trustability_score == 100
    assert analysis.connection_paths[0].description == "Strong connection through shared activities"


def test_analyze_weak_paths_use_estate_name(make_profile, make_connection):
    mutuals = [
        _mutual(make_profile, make_connection, "n1", 40),
        _mutual(make_profile, make_connection, "n2", 50, estate_name=None),
    ]
    analysis = network.analyze(mutuals)
    assert analysis.strong_connections == 0
    assert analysis.average_connection_strength == 45.0
    assert [p.description for p in analysis.connection_paths] == [
        "Community connection through Lekki Gardens",
        "Community connection through your estate",
    ]
    assert all(p.path_type == "through_community" for p in analysis.connection_paths)


def test_analyze_aggregates_ignore_input_order(make_profile, make_connection):
    mutuals = [_mutual(make_profile, make_connection, f"n{i}", s) for i, s in enumerate([91, 77, 64, 30, 55])]
    shuffled = list(mutuals)
    random.Random(7).shuffle(shuffled)
    a = network.analyze(mutuals)
    b = network.analyze(shuffled)
    assert a.model_dump(exclude={"connection_paths"}) == b.model_dump(exclude={"connection_paths"})


def test_strength_levels():
    assert network.strength_level(90) == "very_strong"
    assert network.strength_level(89.9) == "strong"
    assert network.strength_level(60) == "moderate"
    assert network.strength_label(10) == "Weak"


def test_find_mutual_connections_uses_accepted_edges_only(make_profile, make_connection):
    me = make_profile("me", interests={"football", "cooking"})
    them = make_profile("them", interests={"chess"})
    profiles = {
        "n1": make_profile("n1", interests={"football", "chess", "knitting"}),
        "n2": make_profile("n2"),
        "n3": make_profile("n3", is_active=False),
        "n4": make_profile("n4"),
    }
    edges = [
        make_connection("me", "n1"),
        make_connection("n1", "them"),
        make_connection("me", "n2"),
        make_connection("them", "n2", status=ConnectionStatus.PENDING),
        make_connection("me", "n3"),
        make_connection("them", "n3"),
        make_connection("me", "n4"),
        make_connection("n4", "them"),
    ]
    strengths = {"n1": 120.0, "n4": 70.0}

    def signal(neighbor, with_current, with_target):
        assert with_current.involves("me") and with_target.involves("them")
        return strengths[neighbor.id]

    mutuals = network.find_mutual_connections(me, them, edges, profiles, signal)
    assert [m.neighbor.id for m in mutuals] == ["n1", "n4"]
    assert mutuals[0].connection_strength == 100.0
    assert mutuals[0].shared_interests == ("chess", "football")
    assert mutuals[1].shared_interests == ()


def test_analyze_rounds_halves_upward(make_profile, make_connection):
    mutuals = [_mutual(make_profile, make_connection, f"n{i}", s) for i, s in enumerate([80, 81, 80, 80])]
    assert network.analyze(mutuals).average_connection_strength == 80.3

    single = network.analyze([_mutual(make_profile, make_connection, "n1", 15)])
    assert single.average_connection_strength == 15.0
    assert single.trustability_score == 17
