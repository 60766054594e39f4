"""
BOM Import Parser.

Reads the XML budget export produced by the furniture CAD tool (Promob
style) and returns one RawLineItem per priced ITEM, tagged with the
environment (room) it sits in.

Relevant parts of the export:

    <AMBIENT DESCRIPTION="Kitchen">
      <ITEM DESCRIPTION="Panel" QUANTITY="2">
        <MARGINS IDCATEGORY="MDF 18mm"/>
        <BUDGET TOTAL="1000,00" UNIT="500,00"/>
      </ITEM>
    </AMBIENT>

Pure function of the document: no I/O, no shared state.
"""

import logging
from typing import List, Union

from lxml import etree

from .aggregator import aggregate_environments
from .config import PricingConfig
from .exceptions import MalformedDocument, NoPriceableItemsFound
from .money import parse_decimal
from .pricing_engine import PricingEngine
from .schemas import EnvironmentQuoteLine, RawLineItem

logger = logging.getLogger(__name__)


DEFAULT_ENVIRONMENT = "General Environment"
DEFAULT_DESCRIPTION = "Item without description"

ENVIRONMENT_TAG = "AMBIENT"
ITEM_TAG = "ITEM"
BUDGET_TAG = "BUDGET"
MARGINS_TAG = "MARGINS"


class BomParser:
    """
    Walks the CAD export depth-first.

    The environment name in effect is passed down each recursive call; every
    call returns the items it collected and the caller concatenates them.
    """

    def __init__(self):
        # Vendor files are untrusted uploads: no DTD entities, no network
        self._xml_parser = etree.XMLParser(
            resolve_entities=False,
            no_network=True,
            remove_comments=True,
            encoding="utf-8",
        )

    def parse_document(self, content: Union[str, bytes]) -> List[RawLineItem]:
        """
        Main entry point.

        Raises:
            MalformedDocument: content is empty or not a well-formed tree
            NoPriceableItemsFound: the tree has no usable priced item
        """
        root = self._load(content)
        items = self._walk(root, DEFAULT_ENVIRONMENT)
        if not items:
            raise NoPriceableItemsFound()
        return items

    def _load(self, content: Union[str, bytes]):
        if content is None or not content.strip():
            raise MalformedDocument("document is empty")
        if isinstance(content, str):
            data = content.encode("utf-8")
            parser = self._xml_parser
        else:
            data = content
            # Bytes keep their declared encoding (exports are often ISO-8859-1)
            parser = etree.XMLParser(resolve_entities=False, no_network=True, remove_comments=True)
        try:
            return etree.fromstring(data, parser)
        except etree.XMLSyntaxError as e:
            raise MalformedDocument(str(e)) from e

    def _walk(self, node, environment: str) -> List[RawLineItem]:
        # Processing instructions and entities have a non-string tag
        if not isinstance(node.tag, str):
            return []

        if node.tag == ENVIRONMENT_TAG:
            environment = node.get("DESCRIPTION") or environment

        collected = []
        if node.tag == ITEM_TAG:
            item = self._read_item(node, environment)
            if item is not None:
                collected.append(item)

        # Items may nest; environments always have children
        for child in node:
            collected.extend(self._walk(child, environment))
        return collected

    def _read_item(self, node, environment: str):
        """Build a RawLineItem from an ITEM node, or None if it carries no price."""
        budget = node.find(f".//{BUDGET_TAG}")
        if budget is None:
            return None

        total = parse_decimal(budget.get("TOTAL"))
        unit = parse_decimal(budget.get("UNIT"))
        if not (total > 0 or unit > 0):
            return None

        quantity = self._read_quantity(node)

        if total == 0 and unit > 0:
            total = unit * quantity
        # Unit price always comes from the total, the CAD tool's own
        # unit attribute carries accumulated rounding
        unit = total / quantity

        margins = node.find(f".//{MARGINS_TAG}")
        category = (margins.get("IDCATEGORY") if margins is not None else None) or ""

        return RawLineItem(
            description=node.get("DESCRIPTION") or DEFAULT_DESCRIPTION,
            category=category,
            quantity=quantity,
            unit_price=unit,
            total_price=total,
            environment_name=environment,
        )

    @staticmethod
    def _read_quantity(node) -> float:
        raw = node.get("QUANTITY") or node.get("REPETITION")
        quantity = parse_decimal(raw, default=1.0)
        if quantity <= 0:
            quantity = 1.0
        return quantity


def import_bom(content: Union[str, bytes], config: PricingConfig) -> List[EnvironmentQuoteLine]:
    """
    Parse -> aggregate -> markup. What the import screen adds to a draft.
    """
    raw_items = BomParser().parse_document(content)
    lines = aggregate_environments(raw_items)
    engine = PricingEngine(config)
    priced = [engine.recalculate_line(line) for line in lines]
    logger.info(
        "Imported %d priced items into %d environments (cost %.2f)",
        len(raw_items), len(priced), sum(line.cost_total for line in priced),
    )
    return priced
