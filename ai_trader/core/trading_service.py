"""
AI Trading Service - the cycle orchestrator

Each cycle: gather market data -> render prompt -> invoke model -> decode
-> filter -> risk check + execute (sequentially) -> record. The next cycle
is scheduled only after the current one has finished, so cycles never
overlap. Errors inside a cycle become a failed cycle record; only startup
errors and stop() end the loop.

Collaborators (duck-typed):
    provider        .name, .invoke(prompt) -> LLMResponse, .validate_connection()
    market_data     async .gather() -> MarketData, async .validate_connection()
    risk_manager    .begin_cycle(market_data), .assess_risk(TradeCandidate) -> RiskAssessment
    executor        .execute_instruction(instruction) -> ExecutionResult
    notifier        .send_message(text)
"""

import asyncio
import random
import string
import threading
import time
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from ai_trader.agents.risk_audit_agent import TradeCandidate
from ai_trader.core.scheduler import APSchedulerScheduler, ScheduledTask, Scheduler
from ai_trader.execution.engine import ExecutionResult
from ai_trader.strategy.instruction import TradingInstruction
from ai_trader.strategy.instruction_parser import InstructionParser
from ai_trader.strategy.prompt_builder import PromptBuilder
from ai_trader.strategy.templates import PromptTemplate
from ai_trader.utils.logger import log


SKIPPED_DAILY_LIMIT = "Cycle skipped: Daily trade limit reached"


class ServiceStateError(Exception):
    """start() on a running service"""


class StartupError(Exception):
    """Connection validation failed; the service must not start"""


@dataclass(frozen=True)
class OrchestratorState:
    """Counters owned by the orchestrator; replaced, never mutated"""
    is_running: bool = False
    current_cycle: int = 0
    total_executed_trades: int = 0
    daily_trade_count: int = 0
    last_reset_date: str = ""


@dataclass
class TradingCycleResult:
    cycle_id: str
    timestamp: datetime
    ai_provider: str
    ai_response: str
    instructions: List[TradingInstruction] = field(default_factory=list)
    execution_results: List[ExecutionResult] = field(default_factory=list)
    success: bool = True
    error: Optional[str] = None
    duration: float = 0.0
    skipped: bool = False
    parse_stats: Optional[Dict[str, float]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'cycle_id': self.cycle_id,
            'timestamp': self.timestamp.isoformat(),
            'ai_provider': self.ai_provider,
            'ai_response': self.ai_response,
            'instructions': [i.to_dict() for i in self.instructions],
            'execution_results': [r.to_dict() for r in self.execution_results],
            'success': self.success,
            'error': self.error,
            'duration': round(self.duration, 3),
            'skipped': self.skipped,
            'parse_stats': self.parse_stats,
        }


def generate_cycle_id() -> str:
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"cycle_{int(time.time() * 1000)}_{suffix}"


@dataclass
class _CycleProgress:
    """What a cycle produced so far; survives a mid-cycle failure"""
    ai_response: str = ""
    instructions: List[TradingInstruction] = field(default_factory=list)
    execution_results: List[ExecutionResult] = field(default_factory=list)
    executed: int = 0
    parse_stats: Optional[Dict[str, float]] = None


class AITradingService:
    """
    Cycle orchestrator

    run_cycle() is the tick: it hands the current OrchestratorState to
    _tick() and commits the returned state. is_running is only changed
    by start() and stop().
    """

    def __init__(
        self,
        settings,
        provider,
        template: PromptTemplate,
        market_data,
        risk_manager,
        executor,
        notifier=None,
        scheduler: Optional[Scheduler] = None,
        recorder=None,
        parser: Optional[InstructionParser] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        clock: Callable[[], date] = date.today,
    ):
        self.settings = settings
        self.provider = provider
        self.template = template
        self.market_data = market_data
        self.risk_manager = risk_manager
        self.executor = executor
        self.notifier = notifier
        self.scheduler = scheduler or APSchedulerScheduler()
        self.recorder = recorder
        self.parser = parser or InstructionParser()
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.clock = clock

        self._state = OrchestratorState(last_reset_date=clock().isoformat())
        self._pending: Optional[ScheduledTask] = None
        # Bumped by start() and stop(); a cycle only reschedules its own chain
        self._generation = 0
        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._stopped.set()
        self.last_result: Optional[TradingCycleResult] = None

        log.info(
            f"AI trading service initialized: provider={provider.name}, template={template.name}, "
            f"pairs={settings.trading_pairs}, interval={settings.interval_seconds}s, dry_run={settings.dry_run}"
        )

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state.is_running

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self):
        """
        Validate connections, announce, and schedule the first cycle now

        Raises:
            ServiceStateError: already running
            StartupError: exchange or provider unreachable
        """
        if self._state.is_running:
            raise ServiceStateError("AI trading service is already running")

        log.info("🚀 Starting AI trading service...")
        self._validate_connections()

        with self._lock:
            self._state = replace(self._state, is_running=True)
            self._generation += 1
            self._stopped.clear()
            self._schedule_next(0, self._generation)

        mode = "DRY RUN" if self.settings.dry_run else "LIVE TRADING"
        self._notify(
            "🤖 AI Trading Service Started\n"
            f"Provider: {self.provider.name}\n"
            f"Template: {self.template.name}\n"
            f"Pairs: {', '.join(self.settings.trading_pairs)}\n"
            f"Interval: {self.settings.interval_seconds}s\n"
            f"Mode: {mode}"
        )

    def stop(self):
        """Clear the running flag and cancel the next cycle; a cycle in flight finishes"""
        if not self._state.is_running:
            return

        log.info("🛑 Stopping AI trading service...")
        with self._lock:
            self._state = replace(self._state, is_running=False)
            self._generation += 1
            if self._pending is not None:
                self._pending.cancel()
                self._pending = None

        self._notify(
            "🛑 AI Trading Service Stopped\n"
            f"Total Cycles: {self._state.current_cycle}\n"
            f"Total Trades: {self._state.total_executed_trades}"
        )
        self._stopped.set()

    def run_forever(self, poll_seconds: float = 1.0):
        """Block the calling thread until stop()"""
        while not self._stopped.wait(poll_seconds):
            pass
        self.scheduler.shutdown()

    def _validate_connections(self):
        log.info("Validating exchange and model provider connections...")
        if not asyncio.run(self.market_data.validate_connection()):
            raise StartupError("Exchange connection failed")
        if not self.provider.validate_connection():
            raise StartupError(f"{self.provider.name} connection failed")
        log.info("✅ All connections validated")

    def _schedule_next(self, delay_seconds: float, generation: int):
        """Caller holds the lock"""
        self._pending = self.scheduler.schedule(
            delay_seconds, lambda: self._run_scheduled(generation), name="trading_cycle"
        )

    def _run_scheduled(self, generation: int):
        with self._lock:
            if generation != self._generation:
                # Chain was stopped or replaced after this task fired
                return
            self._pending = None
        try:
            self.run_cycle()
        finally:
            with self._lock:
                if self._state.is_running and generation == self._generation:
                    self._schedule_next(self.settings.interval_seconds, generation)

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def run_cycle(self) -> TradingCycleResult:
        """Run one cycle against the current state and commit the result"""
        new_state, result = self._tick(self._state)
        self._state = replace(new_state, is_running=self._state.is_running)
        self.last_result = result
        return result

    def _tick(self, state: OrchestratorState) -> Tuple[OrchestratorState, TradingCycleResult]:
        """
        One cycle

        Args:
            state: Counters at cycle start

        Returns:
            (counters after the cycle, cycle record)
        """
        started = time.time()
        cycle_id = generate_cycle_id()
        timestamp = datetime.now()

        today = self.clock().isoformat()
        if today != state.last_reset_date:
            log.info(f"📅 New trading day {today}, resetting daily trade count")
            state = replace(state, daily_trade_count=0, last_reset_date=today)

        if state.daily_trade_count >= self.settings.max_daily_trades:
            log.warning(f"📊 Daily trade limit ({self.settings.max_daily_trades}) reached. Skipping cycle.")
            result = TradingCycleResult(
                cycle_id=cycle_id,
                timestamp=timestamp,
                ai_provider=self.provider.name,
                ai_response=SKIPPED_DAILY_LIMIT,
                success=True,
                skipped=True,
                duration=time.time() - started,
            )
            self._record(result)
            return state, result

        log.info(f"🔄 Starting AI trading cycle {state.current_cycle + 1} ({cycle_id})")
        progress = _CycleProgress()
        try:
            self._run_stages(state, progress)
            result = TradingCycleResult(
                cycle_id=cycle_id,
                timestamp=timestamp,
                ai_provider=self.provider.name,
                ai_response=progress.ai_response,
                instructions=progress.instructions,
                execution_results=progress.execution_results,
                success=True,
                duration=time.time() - started,
                parse_stats=progress.parse_stats,
            )
            state = replace(state, current_cycle=state.current_cycle + 1)
            log.info(f"✅ Cycle {cycle_id} completed in {result.duration:.2f}s: "
                     f"{len(progress.instructions)} instructions, {progress.executed} executed")
        except Exception as e:  # cycle boundary: record and keep the loop alive
            log.exception(f"❌ Trading cycle {cycle_id} failed: {e}")
            result = TradingCycleResult(
                cycle_id=cycle_id,
                timestamp=timestamp,
                ai_provider=self.provider.name,
                ai_response=progress.ai_response,
                instructions=progress.instructions,
                execution_results=progress.execution_results,
                success=False,
                error=str(e),
                duration=time.time() - started,
                parse_stats=progress.parse_stats,
            )

        state = replace(
            state,
            total_executed_trades=state.total_executed_trades + progress.executed,
            daily_trade_count=state.daily_trade_count + progress.executed,
        )
        self._record(result)
        return state, result

    def _run_stages(self, state: OrchestratorState, progress: _CycleProgress):
        # Gather
        market_data = self._gather_market_data()

        # Prompt + model
        prompt = self.prompt_builder.build(self.template, market_data, self.settings, state.daily_trade_count)
        log.llm_input(prompt)
        response = self.provider.invoke(prompt)
        progress.ai_response = response.content
        log.llm_output(response.content)

        # Decode
        parse_result = self.parser.decode(response.content)
        progress.instructions = list(parse_result.instructions)
        progress.parse_stats = self.parser.get_parsing_stats(parse_result)
        for error in parse_result.parse_errors:
            log.warning(f"Parse: {error}")
        log.info(f"📋 Parsed {len(parse_result.instructions)} instructions, "
                 f"{len(parse_result.valid_instructions)} valid")

        # Filter
        candidates = self.filter_instructions(parse_result.valid_instructions)

        if self.settings.dry_run:
            for instruction in candidates:
                log.info(f"[DRY RUN] Would execute {instruction.action.value} {instruction.symbol}")
            return

        # Execute, strictly in order
        self.risk_manager.begin_cycle(market_data)
        daily_count = state.daily_trade_count
        for instruction in candidates:
            if daily_count + progress.executed >= self.settings.max_daily_trades:
                progress.execution_results.append(ExecutionResult(
                    success=False, instruction=instruction, error="Daily trade limit reached"
                ))
                continue
            result = self._execute(instruction)
            progress.execution_results.append(result)
            if result.success:
                progress.executed += 1

    def _gather_market_data(self):
        gathered = self.market_data.gather()
        if asyncio.iscoroutine(gathered):
            gathered = asyncio.run(gathered)
        return gathered

    def filter_instructions(self, instructions: List[TradingInstruction]) -> List[TradingInstruction]:
        """Drop low-confidence, non-allowed-pair and HOLD instructions"""
        allowed = set(self.settings.trading_pairs)
        kept = []
        for instruction in instructions:
            log.instruction(instruction)
            if instruction.confidence < self.settings.min_confidence_threshold:
                log.info(f"Filtered {instruction.symbol}: confidence {instruction.confidence} "
                         f"< {self.settings.min_confidence_threshold}")
                continue
            if instruction.symbol not in allowed:
                log.info(f"Filtered {instruction.symbol}: not in trading pairs")
                continue
            if instruction.is_hold:
                log.info(f"HOLD {instruction.symbol}: {instruction.reason}")
                continue
            kept.append(instruction)
        return kept

    def _execute(self, instruction: TradingInstruction) -> ExecutionResult:
        """Risk check then execute; never raises"""
        try:
            assessment = self.risk_manager.assess_risk(TradeCandidate.from_instruction(instruction))
            if not assessment.can_execute:
                reasons = ', '.join(assessment.reasons)
                log.risk_alert(f"{instruction.action.value} {instruction.symbol} rejected: {reasons}")
                return ExecutionResult(success=False, instruction=instruction,
                                       error=f"Risk check failed: {reasons}")

            result = self.executor.execute_instruction(instruction)
        except Exception as e:  # one failed instruction never aborts the rest
            log.error(f"Execution failed for {instruction.action.value} {instruction.symbol}: {e}")
            return ExecutionResult(success=False, instruction=instruction, error=str(e))

        if result.success:
            self._notify(
                "✅ Trade Executed\n"
                f"{instruction.action.value} {result.executed_quantity or instruction.quantity} {instruction.symbol}\n"
                f"Price: {result.executed_price or 'MARKET'}\n"
                f"Confidence: {instruction.confidence:g}%\n"
                f"Reason: {instruction.reason}"
            )
        return result

    def _record(self, result: TradingCycleResult):
        if self.recorder is None:
            return
        try:
            self.recorder.record(result.to_dict())
        except OSError as e:
            log.error(f"Failed to record cycle {result.cycle_id}: {e}")

    def _notify(self, text: str):
        if self.notifier is None:
            return
        try:
            self.notifier.send_message(text)
        except Exception as e:  # notifications are best-effort
            log.warning(f"Notification failed: {e}")

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_status(self) -> Dict[str, Any]:
        state = self._state
        return {
            'is_running': state.is_running,
            'current_cycle': state.current_cycle,
            'total_executed_trades': state.total_executed_trades,
            'daily_trade_count': state.daily_trade_count,
            'last_reset_date': state.last_reset_date,
            'provider': self.provider.name,
            'template': self.template.name,
            'trading_pairs': list(self.settings.trading_pairs),
            'interval_seconds': self.settings.interval_seconds,
            'dry_run': self.settings.dry_run,
            'max_daily_trades': self.settings.max_daily_trades,
            'min_confidence_threshold': self.settings.min_confidence_threshold,
        }
