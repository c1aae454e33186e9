"""Shared architecture fixtures for the optimizer tests."""

import pytest

from src.architecture_optimizer.models import Architecture


def func(node_id, label=None, descr="", **properties):
    props = dict(properties)
    if descr:
        props["descr"] = descr
    return {"id": node_id, "type": "FUNC", "label": label or node_id, "properties": props}


def node(node_id, node_type, label=None, **properties):
    return {"id": node_id, "type": node_type, "label": label or node_id, "properties": properties}


def edge(source, target, edge_type):
    return {"source": source, "target": target, "type": edge_type}


@pytest.fixture
def oversized_module():
    """One MOD holding eleven FUNCs, no io edges and no requirements."""
    funcs = [func(f"F{i}") for i in range(1, 12)]
    return Architecture.from_dict({
        "id": "oversized",
        "nodes": [node("M1", "MOD"), *funcs],
        "edges": [edge("M1", f["id"], "allocate") for f in funcs],
    })


@pytest.fixture
def clean_architecture():
    """Five well-connected FUNCs in one MOD with a traced requirement."""
    funcs = [
        func("F1", "ValidateOrder", "validate incoming order payload"),
        func("F2", "ComputeTotal", "sum line prices with tax"),
        func("F3", "SendInvoice", "email billing document to customer"),
        func("F4", "StoreRecord", "persist ledger entry"),
        func("F5", "TransformReport", "render monthly summary"),
    ]
    flows = [node(f"FL{i}", "FLOW") for i in range(1, 5)]
    edges = [edge("M1", f["id"], "allocate") for f in funcs]
    for i in range(1, 5):
        edges.append(edge(f"F{i}", f"FL{i}", "io"))
        edges.append(edge(f"FL{i}", f"F{i + 1}", "io"))
    edges.append(edge("F1", "R1", "satisfy"))
    edges.append(edge("R1", "T1", "verify"))
    return Architecture.from_dict({
        "id": "clean",
        "nodes": [
            node("M1", "MOD"),
            *funcs,
            *flows,
            node("R1", "REQ", descr="orders are validated"),
            node("T1", "TEST"),
        ],
        "edges": edges,
    })


@pytest.fixture
def duplicate_funcs():
    """Two FUNCs that differ only in their synonym verb."""
    return Architecture.from_dict({
        "id": "duplicates",
        "nodes": [
            func("A", "ValidateOrder", "validate the customer order payload"),
            func("B", "CheckOrder", "validate the customer order payload"),
            node("FL_IN", "FLOW"),
            node("FL_OUT", "FLOW"),
            node("R1", "REQ"),
            node("T1", "TEST"),
            node("M1", "MOD"),
        ],
        "edges": [
            edge("FL_IN", "A", "io"),
            edge("A", "FL_OUT", "io"),
            edge("FL_IN", "B", "io"),
            edge("B", "FL_OUT", "io"),
            edge("A", "R1", "satisfy"),
            edge("B", "R1", "satisfy"),
            edge("R1", "T1", "verify"),
            edge("M1", "A", "allocate"),
            edge("M1", "B", "allocate"),
        ],
    })


@pytest.fixture
def mixed_volatility_module():
    """One undersized MOD mixing a volatile and a stable FUNC joined by an io edge."""
    return Architecture.from_dict({
        "id": "mixed",
        "nodes": [
            node("M1", "MOD"),
            func("F1", "ComputeTax", volatility=0.9),
            func("F2", "RenderPage", volatility=0.1),
        ],
        "edges": [
            edge("M1", "F1", "allocate"),
            edge("M1", "F2", "allocate"),
            edge("F1", "F2", "io"),
        ],
    })


@pytest.fixture
def lone_small_module():
    """One MOD with two stable FUNCs and no partner to merge with."""
    return Architecture.from_dict({
        "id": "lone",
        "nodes": [
            node("M1", "MOD"),
            func("F1", "ComputeTax", volatility=0.1),
            func("F2", "RenderPage", volatility=0.1),
        ],
        "edges": [
            edge("M1", "F1", "allocate"),
            edge("M1", "F2", "allocate"),
            edge("F1", "F2", "io"),
        ],
    })
