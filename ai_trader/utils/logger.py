"""
Logging Utility Module - colored console output plus trading-specific helpers
"""
import sys
from pathlib import Path
from loguru import logger
from ai_trader.config import config


def _truncate_middle(text: str, limit: int = 5000, keep: int = 2000) -> str:
    if len(text) <= limit:
        return text
    return text[:keep] + "\n... (middle section omitted) ...\n" + text[-keep:]


class ColoredLogger:
    """Colored logger wrapper

    Free text (model output, exchange errors) is always passed as a format
    argument: loguru does not interpret markup inside arguments.
    """

    ACTION_COLORS = {
        'BUY': 'light-green',
        'SELL': 'light-red',
        'CLOSE': 'light-yellow',
        'SET_STOP_LOSS': 'light-magenta',
        'SET_TAKE_PROFIT': 'light-magenta',
        'HOLD': 'light-blue',
    }

    def __init__(self, logger_instance):
        self._logger = logger_instance

    def __getattr__(self, name):
        """Forward other methods to original logger"""
        return getattr(self._logger, name)

    def llm_input(self, prompt: str):
        """Log the prompt sent to the model (cyan)"""
        bar = '=' * 60
        self._logger.opt(colors=True).info(f"<bold><cyan>{bar}\nLLM Input\n{bar}</cyan></bold>")
        self._logger.opt(colors=True).debug("<cyan>{}</cyan>", _truncate_middle(prompt))

    def llm_output(self, text: str):
        """Log the raw model response (light yellow)"""
        bar = '=' * 60
        self._logger.opt(colors=True).info(
            f"<bold><light-yellow>{bar}\nLLM Output\n{bar}</light-yellow></bold>"
        )
        self._logger.opt(colors=True).info("<light-yellow>{}</light-yellow>", _truncate_middle(text))

    def instruction(self, instruction):
        """Log a decoded trading instruction, colored by action"""
        action = instruction.action.value
        color = self.ACTION_COLORS.get(action, 'white')
        self._logger.opt(colors=True).info(
            f"<bold><{color}>{{}} {{}} (confidence {{}}%, priority {{}})</{color}></bold>",
            action, instruction.symbol, instruction.confidence, instruction.priority.value
        )
        reason = instruction.reason or ''
        if len(reason) > 500:
            reason = reason[:500] + "..."
        if reason:
            self._logger.opt(colors=True).info(f"<{color}>Reason: {{}}</{color}>", reason)

    def risk_alert(self, message: str):
        """Log risk alert (light red)"""
        self._logger.opt(colors=True).warning("<bold><light-red>Risk Alert: {}</light-red></bold>", message)

    def oracle(self, message: str):
        """Market data gathering (blue)"""
        self._logger.opt(colors=True).info("<blue>[Oracle] {}</blue>", message)

    def guardian(self, message: str, blocked: bool = False):
        """Risk decision (green when approved, red when blocked)"""
        icon = "👮" if not blocked else "🚫"
        color = "green" if not blocked else "light-red"
        self._logger.opt(colors=True).info(f"<{color}>{icon} [Guardian] {{}}</{color}>", message)

    def executor(self, message: str, success: bool = True):
        """Order execution (highlight)"""
        icon = "🚀" if success else "❌"
        color = "light-green" if success else "light-red"
        self._logger.opt(colors=True).info(f"<bold><{color}>{icon} [Executor] {{}}</{color}></bold>", message)


def setup_logger():
    """Configure logging system"""
    logger.remove()

    # Console output - enable colors
    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=config.logging.get('level', 'INFO'),
        colorize=True
    )

    # File output: logs/YYYY-MM-DD/debug.log, no color codes
    log_path = Path(config.logging.get('file', 'logs/trading.log'))
    debug_log_file = str(log_path.parent / "{time:YYYY-MM-DD}" / "debug.log")
    logger.add(
        debug_log_file,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message}",
        level="DEBUG",
        rotation="00:00",
        retention="7 days",
        compression="zip"
    )

    return ColoredLogger(logger)


# Global logger instance
log = setup_logger()
