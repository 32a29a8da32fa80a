from hommie.domain.connections import ranking
from hommie.domain.connections.models import ConnectionStatus, ProximityLevel


def _requester(make_profile, **overrides):
    fields = {"building": "Block A", "interests": {"football", "cooking", "chess", "reading", "jazz"}}
    fields.update(overrides)
    return make_profile("me", **fields)


def test_same_building_outranks_same_estate(make_profile):
    me = _requester(make_profile, interests=set())
    building = make_profile("c-building", building="block a ")
    estate = make_profile("c-estate", building="Block C")
    results = ranking.rank(me, [estate, building], [], set(), 10)
    assert [r.candidate_id for r in results] == ["c-building", "c-estate"]
    assert [r.score for r in results] == [40, 30]
    assert results[0].proximity.same_building is True
    assert results[0].proximity.location == "block a , Lekki Gardens"
    assert results[0].reasons[0].description == "Lives in your building"
    assert results[1].proximity.level == "same_estate"


def test_proximity_tiers(make_profile):
    me = _requester(make_profile)
    nearby = make_profile("c1", estate_id="estate-ikoyi", estate_name="Ikoyi Court")
    same_area = make_profile("c2", estate_id="estate-chevron", estate_name="Chevron Villas")
    far = make_profile("c3", estate_id="estate-yaba", area="Yaba")
    assert ranking.proximity_between(me, nearby, {"estate-ikoyi"}) == ProximityLevel.NEARBY_ESTATE
    assert ranking.proximity_between(me, same_area) == ProximityLevel.SAME_AREA
    assert ranking.proximity_between(me, far) is None


def test_exclusions(make_profile, make_connection):
    me = _requester(make_profile)
    candidates = [
        me,
        make_profile("accepted"),
        make_profile("pending"),
        make_profile("blocked"),
        make_profile("declined"),
        make_profile("dismissed"),
        make_profile("closed", privacy={"allow_connections": False}),
        make_profile("inactive", is_active=False),
        make_profile("fresh"),
        make_profile("fresh"),
    ]
    edges = [
        make_connection("me", "accepted"),
        make_connection("pending", "me", status=ConnectionStatus.PENDING),
        make_connection("blocked", "me", status=ConnectionStatus.BLOCKED, blocked_by="blocked"),
        make_connection("me", "declined", status=ConnectionStatus.DECLINED),
    ]
    results = ranking.rank(me, candidates, edges, {"dismissed"}, 10)
    assert [r.candidate_id for r in results] == ["declined", "fresh"]


def test_mutual_connections_and_interest_tiers(make_profile, make_connection):
    me = _requester(make_profile, building=None)
    candidate = make_profile("cand", interests={"Football", "Chess", "golf"})
    edges = [make_connection("me", f"p{i}") for i in range(3)]
    edges += [make_connection(f"p{i}", "cand") for i in range(3)]
    edges.append(make_connection("p9", "cand"))
    [rec] = ranking.rank(me, [candidate], edges, set(), 5)
    by_type = {r.type: r for r in rec.reasons}
    assert rec.mutual_connection_ids == ["p0", "p1", "p2"]
    assert by_type["mutual_connections"].tier == "medium"
    assert by_type["shared_interests"].tier == "medium"
    assert rec.shared_interests == ["Chess", "Football"]
    assert rec.score == 30 + 25 + 20
    assert [r.type for r in rec.reasons] == ["proximity", "mutual_connections", "shared_interests"]


def test_activity_and_safety_reasons(make_profile):
    me = _requester(make_profile, interests=set())
    guard = make_profile(
        "guard",
        building="Block Z",
        badges={"neighborhood_watch", "estate_security"},
        interests={"Emergency Response"},
    )
    quiet = make_profile("quiet", building="Block Z")
    results = ranking.rank(me, [guard, quiet], [], set(), 10, activity_similarity={"guard": 0.75, "quiet": 0.0})
    top, second = results
    assert top.candidate_id == "guard"
    assert {r.type: r.tier for r in top.reasons} == {
        "proximity": "same_estate",
        "activity_similarity": "high",
        "safety_network": "important",
    }
    assert top.score == 30 + 25 + 20
    assert {r.type for r in second.reasons} == {"proximity"}


def test_score_is_capped_at_one_hundred(make_profile, make_connection):
    me = _requester(make_profile)
    star = make_profile(
        "star",
        building="Block A",
        interests={"football", "cooking", "chess", "reading", "jazz"},
        badges={"safety_champion", "security_volunteer", "emergency_responder"},
    )
    edges = [make_connection("me", f"p{i}") for i in range(8)]
    edges += [make_connection(f"p{i}", "star") for i in range(8)]
    [rec] = ranking.rank(me, [star], edges, set(), 1, activity_similarity={"star": 0.9})
    assert rec.score == 100


def test_limit_and_determinism(make_profile):
    me = _requester(make_profile, interests=set())
    candidates = [make_profile(f"c{i}", building="Block B") for i in range(6)]
    assert ranking.rank(me, candidates, [], set(), 0) == []
    first = ranking.rank(me, candidates, [], set(), 3)
    second = ranking.rank(me, list(reversed(candidates)), [], set(), 3)
    assert [r.candidate_id for r in first] == ["c0", "c1", "c2"]
    assert [r.model_dump() for r in first] == [r.model_dump() for r in second]


def test_prioritize_proximity(make_profile):
    me = _requester(make_profile)
    social = make_profile("social", building="Block B", interests={"football", "cooking", "chess", "reading", "jazz"})
    next_door = make_profile("next-door", building="Block A")
    default = ranking.rank(me, [social, next_door], [], set(), 10)
    assert [r.candidate_id for r in default] == ["social", "next-door"]
    prioritized = ranking.rank(me, [social, next_door], [], set(), 10, prioritize_proximity=True)
    assert [r.candidate_id for r in prioritized] == ["next-door", "social"]


def test_categories_filter(make_profile):
    me = _requester(make_profile, interests=set())
    guard = make_profile("guard", badges={"safety_champion"})
    plain = make_profile("plain")
    results = ranking.rank(me, [guard, plain], [], set(), 10, categories={"safety_network"})
    assert [r.candidate_id for r in results] == ["guard"]


def test_privacy_hides_location_and_mutuals(make_profile, make_connection):
    me = _requester(make_profile)
    shy = make_profile(
        "shy",
        building="Block A",
        phone_verified=True,
        identity_verified=True,
        privacy={"show_location": False, "show_mutual_connections": False},
    )
    edges = [make_connection("me", "p1"), make_connection("p1", "shy")]
    [rec] = ranking.rank(me, [shy], edges, set(), 1)
    assert rec.proximity.location == ""
    assert rec.mutual_connection_ids == []
    assert rec.trust_score == 50
    assert rec.trust_level == "trusted_neighbor"


def test_equal_scores_prefer_same_building_over_id(make_profile):
    me = _requester(make_profile, interests={"football"})
    estate = make_profile("a-estate", building="Block C", interests={"football"})
    building = make_profile("z-building", building="Block A", interests=set())
    for candidates in ([estate, building], [building, estate]):
        results = ranking.rank(me, candidates, [], set(), 10)
        assert [r.candidate_id for r in results] == ["z-building", "a-estate"]
        assert [r.score for r in results] == [40, 40]
