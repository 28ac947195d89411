"""
Application entry point.

This module defines a simple command-line interface for driving the
trading loop.  Each sub-command loads the configuration, restores the
controller state from disk, performs its action while holding the
per-symbol single-flight lock and saves the state again, so the
commands can be invoked from cron as well as interactively.
"""

from __future__ import annotations

import argparse
import json
import logging
import time
from typing import Any, Dict, List, Optional

from .config.schema import Config, load_config
from .data.gate_io import GateIOGateway
from .data.gateway import ExchangeGateway
from .data.paper import PaperGateway
from .errors import TradingError
from .execution.ledger import JsonLedger
from .execution.models import TraderState
from .execution.session_controller import SessionController
from .reporting.report import generate_session_report
from .utils.persistence import load_state, save_state, single_flight


logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )


def build_controller(config: Config) -> SessionController:
    """Wire gateway, ledger and persisted state into a controller."""
    persisted: Dict[str, Any] = load_state(config.storage.state_file) or {}
    live = GateIOGateway(config.gateway)
    gateway: ExchangeGateway
    if config.mode == 'live':
        gateway = live
    else:
        balances = persisted.get('paper_balances') or {config.quote_currency: config.gateway.paper_balance}
        gateway = PaperGateway(live, balances)

    def persist(state: TraderState) -> None:
        document: Dict[str, Any] = {'trader': state.to_dict()}
        if isinstance(gateway, PaperGateway):
            document['paper_balances'] = gateway.balances
        save_state(config.storage.state_file, document)

    state = TraderState.from_dict(persisted['trader']) if persisted.get('trader') else None
    return SessionController(
        config,
        gateway,
        JsonLedger(config.storage.ledger_file),
        state=state,
        on_change=persist,
    )


def _print(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _run_loop(controller: SessionController, config: Config, once: bool) -> None:
    """Restart-check and tick every `poll_seconds` until interrupted."""
    logger.info("Starting trading loop on %s (mode=%s)", config.symbol, config.mode)
    if not controller.is_session_active():
        controller.start_session()
    try:
        while True:
            try:
                with single_flight(config.storage.lock_dir, config.symbol):
                    controller.check_and_restart()
                    if controller.is_session_active():
                        result = controller.execute_trading()
                        logger.info("Tick result: %s (%s) %s", result.action, result.status, result.details)
            except TradingError as exc:
                logger.error("Tick aborted: %s", exc)
            if once:
                break
            time.sleep(config.poll_seconds)
    except KeyboardInterrupt:
        logger.info("Shutting down trading loop...")


def main(argv: Optional[List[str]] = None) -> int:
    """Parse command-line arguments and dispatch to the requested command."""
    parser = argparse.ArgumentParser(description="Spot trading loop")
    parser.add_argument(
        'command',
        choices=['start', 'stop', 'tick', 'run', 'status', 'report'],
        help="Action to perform",
    )
    parser.add_argument('--config', default='config.yaml', help="Path to configuration YAML file")
    parser.add_argument('--reason', default='manual', help="Stop reason recorded by 'stop'")
    parser.add_argument('--session-id', help="Session reported by 'report' (default: latest)")
    parser.add_argument('--once', action='store_true', help="Run a single iteration of 'run'")
    parser.add_argument('-v', '--verbose', action='store_true', help="Enable debug logging")
    args = parser.parse_args(argv)

    _setup_logging(args.verbose)

    try:
        config = load_config(args.config)
        controller = build_controller(config)

        if args.command == 'run':
            _run_loop(controller, config, args.once)
        elif args.command == 'status':
            session = controller.get_current_session()
            _print({
                'active': controller.is_session_active(),
                'session': session.to_dict() if session else None,
                'position': controller.state.position.to_dict(),
            })
        elif args.command == 'report':
            ledger = controller.ledger
            session = ledger.load_session(args.session_id) if args.session_id else ledger.latest_session(config.symbol)
            if session is None:
                logger.error("No session found for %s", args.session_id or config.symbol)
                return 1
            _print(generate_session_report(session, ledger.list_transactions(session.id), config.storage.report_dir))
        else:
            with single_flight(config.storage.lock_dir, config.symbol):
                if args.command == 'start':
                    _print(controller.start_session().to_dict())
                elif args.command == 'stop':
                    _print(controller.stop_session(args.reason).to_dict())
                else:
                    result = controller.execute_trading()
                    _print({'action': result.action, 'status': result.status, 'details': result.details})
    except TradingError as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
