"""
Command-line interface for the categorization and card ranking engine.
Works over a JSON catalog file (the packaged sample catalog by default).
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from cardmatch.config import LOG_LEVEL
from cardmatch.engine.models import PurchaseQuery
from cardmatch.errors import CardMatchError
from cardmatch.services.catalog_repository import InMemoryCatalogRepository, load_catalog_file
from cardmatch.services.categorization_service import CategorizeOptions, build_categorization_service
from cardmatch.services.portfolio_service import PortfolioService
from cardmatch.services.recommendation_service import RecommendationService


def parse_card_ids(value: str) -> List[int]:
    """
    Parse a comma-separated list of card ids.

    Example:
        >>> parse_card_ids("1, 5,8")
        [1, 5, 8]
    """
    try:
        ids = [int(part) for part in value.split(",") if part.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid card id list '{value}'. Expected e.g. 1,5,8")
    if not ids:
        raise argparse.ArgumentTypeError("At least one card id is required")
    return ids


def load_repository(path: Optional[str]) -> InMemoryCatalogRepository:
    return InMemoryCatalogRepository.from_catalog(load_catalog_file(path))


def cmd_categorize(args):
    """
    Categorize a purchase description.

    Args:
        args: Parsed command-line arguments with fields:
            - description: free text
            - force_tier: optional keyword | semantic | llm
    """
    service = build_categorization_service()
    result = asyncio.run(
        service.categorize(args.description, CategorizeOptions(force_tier=args.force_tier))
    )

    print(f"\n=== Categorization ===\n")
    print(f"Description: {args.description}")
    print(f"Category:    {result.category.value}")
    print(f"Confidence:  {result.confidence:.2f}")
    print(f"Source:      {result.source.value}")
    if result.reasoning:
        print(f"Reasoning:   {result.reasoning}")
    print()


def cmd_recommend(args):
    """
    Recommend a card for a purchase.

    Args:
        args: Parsed command-line arguments with fields:
            - description: free text
            - amount: optional purchase amount
            - date: optional YYYY-MM-DD
            - cards: optional candidate card ids (defaults to the whole catalog)
            - catalog: optional catalog file
    """
    repository = load_repository(args.catalog)
    service = RecommendationService(build_categorization_service(), repository)
    query = PurchaseQuery.create(args.description, amount=args.amount, on_date=args.date)

    result = asyncio.run(
        service.recommend_card(query, CategorizeOptions(force_tier=args.force_tier), card_ids=args.cards)
    )

    classification = result.classification
    print(f"\n=== Card Recommendation ===\n")
    print(f"Purchase: {query.description}" + (f" (${query.amount:.2f})" if query.amount else ""))
    print(
        f"Category: {classification.category.value} "
        f"({classification.confidence:.2f} via {classification.source.value})"
    )

    if result.recommended is None:
        print("\nNo candidate cards.")
        return

    print(f"\nRecommended Card: {result.recommended.card.name}")
    print(f"\n--- Ranked Options ---\n")
    for i, rec in enumerate([result.recommended] + result.alternatives, 1):
        print(f"{i}. {rec.card.name} - {rec.rate.rate:.2f}x (score {rec.score:.3f})")
        for line in rec.reasoning:
            print(f"   • {line}")
        print()


def cmd_gaps(args):
    """
    Show where a portfolio trails the best rates in the catalog.

    Args:
        args: Parsed command-line arguments with fields:
            - cards: the user's card ids
            - mode: auto | category
            - category: required for category mode
            - catalog: optional catalog file
    """
    repository = load_repository(args.catalog)
    user_cards = repository.get_cards(args.cards)
    analysis = PortfolioService(repository).analyze_portfolio_gaps(
        mode=args.mode, category=args.category, user_cards=user_cards
    )

    print(f"\n=== Portfolio Gaps ({analysis.mode}) ===\n")
    print("Your cards: " + ", ".join(card.name for card in user_cards))
    print()

    if not analysis.gaps:
        print("No significant gaps - your portfolio is already close to the market best.")
        print()
        return

    for gap in analysis.gaps:
        print(
            f"{gap.category.value}: you earn {gap.user_best_rate:.1f}x, market best {gap.market_best_rate:.1f}x "
            f"(+{gap.improvement:.1f}, {gap.priority} priority)"
        )
        if gap.has_good_coverage is not None:
            for owned in gap.user_best_cards:
                print(f"   your {owned.card_name} - {owned.rate:.1f}x")
            if gap.has_good_coverage:
                print("   Coverage: good, you are within 1x of the market best")
            else:
                print("   Coverage: weak, a better card is available")
        for leader in gap.market_leaders:
            print(f"   • {leader.card_name} - {leader.rate:.1f}x, ${leader.annual_fee:.0f} annual fee")
    print()

    summary = analysis.summary
    print(
        f"{summary['total_gaps']} gap(s), {summary['high_priority_gaps']} high priority, "
        f"total improvement potential {summary['total_improvement_potential']:.1f}x"
    )
    print()


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Purchase categorization and card recommendation CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Logging level (default: %(default)s)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Categorize command
    parser_categorize = subparsers.add_parser("categorize", help="Categorize a purchase description")
    parser_categorize.add_argument("description", help="Purchase description")
    parser_categorize.add_argument("--force-tier", choices=["keyword", "semantic", "llm"], default=None,
                                   help="Run only this tier and overwrite the cache")

    # Recommend command
    parser_recommend = subparsers.add_parser("recommend", help="Get card recommendation")
    parser_recommend.add_argument("description", help="Purchase description")
    parser_recommend.add_argument("--amount", default=None, help="Purchase amount")
    parser_recommend.add_argument("--date", default=None, help="Purchase date (YYYY-MM-DD)")
    parser_recommend.add_argument("--cards", type=parse_card_ids, default=None,
                                  help="Candidate card ids, e.g. 1,5,8 (default: whole catalog)")
    parser_recommend.add_argument("--catalog", default=None, help="Catalog JSON file")
    parser_recommend.add_argument("--force-tier", choices=["keyword", "semantic", "llm"], default=None)

    # Gaps command
    parser_gaps = subparsers.add_parser("gaps", help="Analyze portfolio gaps")
    parser_gaps.add_argument("--cards", type=parse_card_ids, required=True, help="Your card ids, e.g. 1,5")
    parser_gaps.add_argument("--mode", choices=["auto", "category"], default="auto")
    parser_gaps.add_argument("--category", default=None, help="Category for category mode")
    parser_gaps.add_argument("--catalog", default=None, help="Catalog JSON file")

    # Parse arguments
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s [%(name)s] %(message)s")

    # Execute command
    try:
        if args.command == "categorize":
            cmd_categorize(args)
        elif args.command == "recommend":
            cmd_recommend(args)
        elif args.command == "gaps":
            cmd_gaps(args)
    except CardMatchError as e:
        print(f"Error: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
