"""
LangGraph wiring for the extraction pipeline: encode → extract.

The graph is compiled without a checkpointer; the page controller owns the
session state and only hands the uploaded image to the graph.
"""

from __future__ import annotations

from typing import Any, List

from langgraph.graph import END, START, StateGraph

from receipt_invoicer.graph.nodes.encode import encode_node
from receipt_invoicer.graph.nodes.extract import ExtractionClient, make_extract_node
from receipt_invoicer.graph.state import ExtractionState, LineItem, ReceiptImage


def build_graph(client: ExtractionClient) -> Any:
	"""Build and compile the extraction graph for the given client."""
	graph = StateGraph(ExtractionState)
	graph.add_node("encode", encode_node)
	graph.add_node("extract", make_extract_node(client))
	graph.add_edge(START, "encode")
	graph.add_edge("encode", "extract")
	graph.add_edge("extract", END)
	return graph.compile()


async def run_extraction(app_graph: Any, image: ReceiptImage) -> List[LineItem]:
	"""Invoke the graph for one image and return the extracted items.

	Errors raised by a node (EncodeError, ExtractionError) propagate unchanged.
	"""
	result = await app_graph.ainvoke(ExtractionState(image=image))
	items = result["items"] if isinstance(result, dict) else result.items
	return [item if isinstance(item, LineItem) else LineItem.model_validate(item) for item in items]
