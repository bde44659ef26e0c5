import itertools

from schemas.process_tree import EdgeTag, NodeKind, Point
from services.tree_resolver import resolve
from translators.flowchart_layout import FlowchartLayoutEngine, layout, svg_path


def decision_tree(make_step, make_branch):
    steps = [make_step("s1", 1, is_decision=True)]
    branches = [make_branch("s1", "yes", None), make_branch("s1", "no", None)]
    return resolve(steps, branches)


def test_linear_chain_is_centered_and_stacked(make_step):
    tree = resolve([make_step("s1", 1), make_step("s2", 2, next_step_id=None)], [])

    result = layout(tree)

    xs = {p.x for p in result.positions.values()}
    ys = [result.positions[n.id].y for n in tree.nodes()]
    assert xs == {700}
    assert ys == [80, 280, 480, 680]
    assert result.bounds.width == 1400
    assert result.bounds.height == 880


def test_straight_edges_between_aligned_nodes(make_step):
    tree = resolve([make_step("s1", 1, next_step_id=None)], [])

    result = layout(tree)

    start_edge = result.edges[0]
    assert start_edge.tag == EdgeTag.NORMAL
    assert start_edge.source == "start"
    assert start_edge.target == "s1"
    assert start_edge.path == "M 700 115 L 700 230"
    assert len(start_edge.points) == 2
    assert start_edge.label is None


def test_decision_children_split_and_elbow_routed(make_step, make_branch):
    tree = decision_tree(make_step, make_branch)

    result = layout(tree)

    decision = tree.root.left
    yes_end, no_end = decision.yes_child, decision.no_child
    assert result.positions[decision.id].x == 700
    assert result.positions[yes_end.id].x == 350
    assert result.positions[no_end.id].x == 1050

    yes_edge = next(e for e in result.edges if e.tag == EdgeTag.YES)
    no_edge = next(e for e in result.edges if e.tag == EdgeTag.NO)
    assert yes_edge.path == "M 700 360 L 700 402.5 L 350 402.5 L 350 445"
    assert yes_edge.label == "YES"
    assert yes_edge.label_position.x == 670
    assert yes_edge.label_position.y == 380
    assert no_edge.label == "NO"
    assert no_edge.label_position.x == 1020


def test_uneven_subtrees_split_proportionally(make_step, make_branch):
    steps = [
        make_step("d", 1, is_decision=True),
        make_step("a", 2),
        make_step("b", 3, next_step_id=None),
    ]
    branches = [make_branch("d", "yes", "a"), make_branch("d", "no", None)]
    tree = resolve(steps, branches)
    engine = FlowchartLayoutEngine()

    result = engine.layout(tree)

    decision = tree.root.left
    # yes side: a -> b -> end is 1050 wide, no side: end is 350 wide
    assert engine.subtree_width(decision.yes_child) == 1050
    assert engine.subtree_width(decision.no_child) == 350
    assert engine.subtree_width(tree.root) == 2100
    assert result.bounds.width == 2100
    yes_span = result.allocated_spans[decision.yes_child.id]
    no_span = result.allocated_spans[decision.no_child.id]
    assert (yes_span.left, yes_span.right) == (0, 1575)
    assert (no_span.left, no_span.right) == (1575, 2100)


def test_layout_is_deterministic(admission_guide):
    first = layout(resolve(admission_guide.steps, admission_guide.branches))
    second = layout(resolve(admission_guide.steps, admission_guide.branches))

    assert first.model_dump_json() == second.model_dump_json()


def test_sibling_spans_never_overlap(admission_guide):
    tree = resolve(admission_guide.steps, admission_guide.branches)

    result = layout(tree)

    for node in tree.nodes():
        children = [child for _tag, child in node.children()]
        for a, b in itertools.combinations(children, 2):
            assert not result.allocated_spans[a.id].overlaps(result.allocated_spans[b.id])

    leaves = [n for n in tree.nodes() if n.is_leaf]
    for a, b in itertools.combinations(leaves, 2):
        assert not result.allocated_spans[a.id].overlaps(result.allocated_spans[b.id])
        assert result.positions[a.id].x != result.positions[b.id].x or \
            result.positions[a.id].y != result.positions[b.id].y


def test_every_node_and_edge_is_laid_out(admission_guide):
    tree = resolve(admission_guide.steps, admission_guide.branches)

    result = layout(tree)

    assert set(result.positions) == {n.id for n in tree.nodes()}
    assert len(result.edges) == len(tree.nodes()) - 1
    assert result.bounds.height == max(p.y for p in result.positions.values()) + 200
    assert all(result.positions[n.id].y >= 80 for n in tree.nodes())


def test_custom_constants(make_step):
    engine = FlowchartLayoutEngine(min_spacing=100, level_height=50, y_offset=10, minimum_canvas_width=0)
    tree = resolve([make_step("s1", 1, next_step_id=None)], [])

    result = engine.layout(tree)

    assert result.bounds.width == 300
    assert [result.positions[n.id].y for n in tree.nodes()] == [10, 60, 110]
    assert tree.nodes()[-1].kind == NodeKind.END


def test_svg_path_formats_fractions():
    assert svg_path([Point(x=1, y=2.5), Point(x=3.25, y=4)]) == "M 1 2.5 L 3.25 4"
