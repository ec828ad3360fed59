"""Command line interface for MultiSend.

Usage:
    python -m multisend check FILE [--max-recipients N]
    python -m multisend export FILE --format csv|json [--output PATH]
    python -m multisend send FILE --from ADDRESS [--rpc-url URL --contract ADDRESS | --relay-url URL]
                             [--token ADDRESS --decimals N --symbol SYMBOL] [--balance B] [--value V] [--yes]
"""

from __future__ import annotations

import argparse
import sys

from multisend import __version__
from multisend.features.batch import MultiSendService, TokenDescriptor
from multisend.features.recipients import (
    AddressValidator,
    AmountValidator,
    read_recipients_file,
    summarize,
    validate_recipient,
    write_recipients_file,
)
from multisend.features.recipients.import_export import export_to_csv, export_to_json
from multisend.features.recipients.validators import is_empty_amount
from multisend.features.settlement import ContractSettlement, RelaySettlement
from multisend.shared.config import MultiSendConfig
from multisend.shared.formatting import format_address, format_balance, format_decimal
from multisend.shared.logging import (
    LoggingConfig,
    LogLevel,
    format_error_for_user,
    setup_logging,
)


def _load(path: str):
    try:
        return read_recipients_file(path)
    except (OSError, ValueError) as e:
        print(f"Error reading {path}: {e}")
        return None


def _row_problems(recipient) -> list[str]:
    problems = []
    address = AddressValidator.validate(recipient.address)
    if not address.is_valid:
        problems.append(address.error_message)
    if not is_empty_amount(recipient.amount):
        amount = AmountValidator.validate(recipient.amount)
        if not amount.is_valid:
            problems.append(amount.error_message)
    return problems


def cmd_check(args: argparse.Namespace) -> int:
    recipients = _load(args.file)
    if recipients is None:
        return 1

    summary = summarize(recipients)
    print(f"Loaded {summary.recipient_count} recipients from {args.file}")

    for index, recipient in enumerate(recipients):
        if not validate_recipient(recipient.address, recipient.amount):
            problems = "; ".join(_row_problems(recipient))
            print(
                f"  ✗ line {index + 1}: {recipient.address or '<empty>'} "
                f"{recipient.amount or '<no amount>'} ({problems})"
            )
        elif not recipient.amount.strip():
            print(f"  ! line {index + 1}: {recipient.address} has no amount")

    for address in summary.duplicates:
        print(f"  ✗ duplicate address: {address}")

    max_recipients = args.max_recipients or MultiSendConfig.from_environment().max_recipients
    if summary.recipient_count > max_recipients:
        print(f"  ✗ {summary.recipient_count} recipients exceed the maximum of {max_recipients}")

    print(f"Valid: {summary.valid_count}  Invalid: {summary.invalid_count}")
    print(f"Total amount: {summary.total_display}")

    if summary.is_ready and summary.recipient_count <= max_recipients:
        print("✓ Batch is ready to send")
        return 0
    return 1


def cmd_export(args: argparse.Namespace) -> int:
    recipients = _load(args.file)
    if recipients is None:
        return 1

    if args.output:
        try:
            path = write_recipients_file(recipients, args.output, args.format)
        except (OSError, ValueError) as e:
            print(f"Error writing {args.output}: {e}")
            return 1
        print(f"Exported {len(recipients)} recipients to {path}")
        return 0

    content = export_to_json(recipients) if args.format == "json" else export_to_csv(recipients)
    print(content.rstrip("\n"))
    return 0


def _build_settlement(args: argparse.Namespace, config: MultiSendConfig):
    relay_url = args.relay_url or config.relay_url
    if relay_url:
        return RelaySettlement(
            relay_url,
            timeout_seconds=config.receipt_timeout,
            poll_interval_seconds=config.poll_interval,
            timeout_config=config.timeout_config,
        )

    rpc_url = args.rpc_url or config.rpc_url
    contract = args.contract or config.contract_address
    if not rpc_url or not contract:
        return None
    return ContractSettlement.from_rpc(
        rpc_url,
        contract,
        receipt_timeout=config.receipt_timeout,
        poll_interval=config.poll_interval,
    )


def _build_token(args: argparse.Namespace) -> TokenDescriptor:
    if args.token:
        return TokenDescriptor(
            symbol=args.symbol or "TOKEN",
            name=args.symbol or "Token",
            decimals=args.decimals,
            address=args.token,
            balance=args.balance,
        )
    return TokenDescriptor.native(
        symbol=args.symbol or "ETH", decimals=args.decimals, balance=args.balance
    )


def cmd_send(args: argparse.Namespace) -> int:
    config = MultiSendConfig.from_environment()

    settlement = _build_settlement(args, config)
    if settlement is None:
        print("Either --relay-url or both --rpc-url and --contract are required")
        return 1

    try:
        token = _build_token(args)
    except ValueError as e:
        print(f"Invalid token: {e}")
        return 1

    service = MultiSendService.create(args.sender, settlement, config)
    try:
        service.import_file(args.file)
    except (OSError, ValueError) as e:
        print(f"Error reading {args.file}: {e}")
        return 1
    service.select_token(token)

    summary = service.summary()
    print(
        f"Sending {summary.total_display} {token.symbol} to "
        f"{summary.recipient_count} recipients from {format_address(args.sender)}"
    )
    if token.balance is not None:
        print(f"Balance: {format_balance(token.balance, token.symbol)}")

    if not args.yes:
        response = input("Proceed? [y/N]: ")
        if response.lower() not in ("y", "yes"):
            print("Aborted.")
            return 0

    result = service.send(
        value=args.value,
        on_status_change=lambda status: print(f"  {status.state.value}..."),
    )

    if result.is_success and result.completion:
        print(
            f"✓ Sent {format_decimal(result.completion.total_amount)} {token.symbol} "
            f"to {result.completion.recipient_count} recipients"
        )
        if result.transaction_reference:
            print(f"  Transaction: {result.transaction_reference}")
        url = service.transaction_url()
        if url:
            print(f"  Explorer: {url}")
        return 0

    kind = result.error_kind.value if result.error_kind else "Error"
    print(f"✗ {kind}: {result.error_message or kind}")
    print(f"  {format_error_for_user(f'{kind}: {result.error_message}')}")
    if result.error_kind and not result.error_kind.from_settlement:
        print("  No transaction was submitted.")
    if result.transaction_reference:
        print(f"  Transaction: {result.transaction_reference}")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="multisend",
        description="Atomic batch transfers to many recipients",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version=f"multisend {__version__}"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Log debug output to stdout"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    check_parser = subparsers.add_parser("check", help="Validate a recipient list")
    check_parser.add_argument("file", help="Recipient list (CSV, JSON or text)")
    check_parser.add_argument(
        "--max-recipients", type=int, default=None, help="Maximum batch size"
    )

    export_parser = subparsers.add_parser(
        "export", help="Convert a recipient list to CSV or JSON"
    )
    export_parser.add_argument("file", help="Recipient list (CSV, JSON or text)")
    export_parser.add_argument(
        "--format", choices=["csv", "json"], default="csv", help="Output format"
    )
    export_parser.add_argument(
        "--output", "-o", default=None, help="Output path (stdout if omitted)"
    )

    send_parser = subparsers.add_parser("send", help="Send a batch atomically")
    send_parser.add_argument("file", help="Recipient list (CSV, JSON or text)")
    send_parser.add_argument(
        "--from", dest="sender", required=True, help="Sending account address"
    )
    send_parser.add_argument("--rpc-url", default=None, help="JSON-RPC endpoint")
    send_parser.add_argument(
        "--contract", default=None, help="MultiSend contract address"
    )
    send_parser.add_argument(
        "--relay-url", default=None, help="Settle through an HTTP relay instead"
    )
    send_parser.add_argument(
        "--token", default=None, help="ERC-20 token address (native if omitted)"
    )
    send_parser.add_argument(
        "--decimals", type=int, default=18, help="Token decimals. Default: 18"
    )
    send_parser.add_argument("--symbol", default=None, help="Token symbol")
    send_parser.add_argument(
        "--balance", default=None, help="Known balance for a local balance check"
    )
    send_parser.add_argument(
        "--value", default=None, help="Native value to attach (defaults to total)"
    )
    send_parser.add_argument(
        "--yes", "-y", action="store_true", help="Skip confirmation prompt"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging_config = LoggingConfig.from_environment()
    if args.verbose:
        logging_config.log_level = LogLevel.DEBUG
        logging_config.log_to_stdout = True
    setup_logging(logging_config)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "check": cmd_check,
        "export": cmd_export,
        "send": cmd_send,
    }
    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
