"""
Rule discovery and evaluation.

Every module in ``natbridge.rules`` that exports ``analyze(context)`` is a
rule. Rules run independently and in module-name order; each returns the
issues it found.
"""

import importlib
import logging
import pkgutil
from dataclasses import dataclass
from typing import Callable, Dict, List

from .config import Settings
from .models import InspectionSnapshot, Issue, IssueSet


@dataclass(frozen=True)
class SystemContext:
    """What a rule gets to look at"""
    snapshot: InspectionSnapshot
    settings: Settings
    logger: logging.Logger


class RuleRegistry:
    """Registry for dynamically loaded rule modules"""

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.rules: Dict[str, Callable[[SystemContext], List[Issue]]] = {}
        self.disabled_rules = set()

    def load_rules(self, rules_package: str = "natbridge.rules"):
        """Import every public module of the rules package"""
        package = importlib.import_module(rules_package)

        for module_info in pkgutil.iter_modules(package.__path__):
            module_name = module_info.name
            if module_name.startswith('_'):
                continue

            try:
                module = importlib.import_module(f"{rules_package}.{module_name}")
            except ImportError as e:
                self.logger.error(f"Failed to load rule module {module_name}: {e}")
                continue

            if callable(getattr(module, 'analyze', None)):
                self.rules[module_name] = module.analyze
                self.logger.debug(f"Loaded rule module: {module_name}")
            else:
                self.logger.warning(f"Rule module {module_name} missing analyze() function")

    def register(self, name: str, analyze: Callable[[SystemContext], List[Issue]]):
        self.rules[name] = analyze

    def disable_rule(self, rule_name: str):
        if rule_name not in self.rules:
            self.logger.warning(f"Unknown rule: {rule_name}")
        self.disabled_rules.add(rule_name)
        self.logger.info(f"Disabled rule: {rule_name}")

    def get_available_rules(self) -> List[str]:
        return list(self.rules.keys())

    def get_enabled_rules(self) -> List[str]:
        return [name for name in self.rules.keys() if name not in self.disabled_rules]

    def analyze_all(self, context: SystemContext) -> IssueSet:
        """Run all enabled rules and collect their issues in detection order"""
        issues = IssueSet()

        for rule_name, analyze_func in self.rules.items():
            if rule_name in self.disabled_rules:
                self.logger.debug(f"Skipping disabled rule: {rule_name}")
                continue

            try:
                found = analyze_func(context)
            except Exception as e:
                self.logger.error(f"Rule {rule_name} failed: {e}")
                continue

            issues.extend(found)
            self.logger.debug(f"Rule {rule_name} reported {len(found)} issue(s)")

        return issues
