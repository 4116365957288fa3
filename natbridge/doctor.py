"""
The diagnose, remediate and verify pipeline.
"""

import logging
import random
from typing import Optional, Tuple

from .backup import BackupManager
from .config import Settings
from .gateway import SystemGateway
from .inspector import StateInspector
from .models import InspectionSnapshot, IssueSet, RunReport
from .output import Colors, StatusPrinter
from .registry import RuleRegistry, SystemContext
from .remediator import Remediator
from .verifier import Verifier


class BridgeDoctor:
    """Main NAT bridge repair class"""

    def __init__(self, settings: Settings, gateway: SystemGateway,
                 printer: StatusPrinter, registry: Optional[RuleRegistry] = None,
                 logger: Optional[logging.Logger] = None,
                 verifier: Optional[Verifier] = None,
                 rng: Optional[random.Random] = None):
        self.settings = settings
        self.gateway = gateway
        self.printer = printer
        self.logger = logger or logging.getLogger('natbridge')
        self.rng = rng

        if registry is None:
            registry = RuleRegistry(self.logger)
            registry.load_rules()
            for rule in settings.disabled_rules:
                registry.disable_rule(rule)
        self.registry = registry

        self.verifier = verifier or Verifier(gateway, settings, printer, self.logger)

    def diagnose(self) -> Tuple[InspectionSnapshot, IssueSet]:
        """Inspect the host and evaluate every enabled rule"""
        snapshot = StateInspector(self.gateway, self.settings, self.logger).inspect()
        context = SystemContext(snapshot=snapshot, settings=self.settings, logger=self.logger)
        issues = self.registry.analyze_all(context)

        self.printer.heading(f"Found {len(issues)} issue(s)")
        if not issues:
            self.printer.success("NAT bridge configuration looks healthy")
        for issue in issues:
            display = self.printer.color_manager.get_severity_display(issue.severity)
            print(f"  {display} {issue.value}: {issue.description}", file=self.printer.stream)

        return snapshot, issues

    def run(self, check_only: bool = False) -> RunReport:
        """One complete pass. Backups are written before anything can change."""
        backup = None
        if not check_only:
            backup = BackupManager(self.gateway, self.settings, self.logger).create()
            self.printer.info(f"Backups written to {backup.directory} ({backup.timestamp})")

        snapshot, issues = self.diagnose()
        report = RunReport(issues=issues, backup=backup)

        if check_only or not issues:
            return report

        self.printer.heading("Applying fixes")
        remediator = Remediator(self.gateway, self.settings, snapshot, self.printer,
                                self.logger, rng=self.rng)
        report.fixes = remediator.remediate(issues)

        report.rules_persisted = remediator.persist_rules()
        if report.rules_persisted:
            self.printer.success("Firewall rules saved")
        else:
            self.printer.warning("Firewall rules could not be saved; they will be lost on reboot")

        self.printer.heading("Verifying")
        report.verified = self.verifier.verify()
        return report

    def print_summary(self, report: RunReport):
        cm = self.printer.color_manager
        self.printer.heading("Summary")

        if not report.issues:
            print("  No issues found", file=self.printer.stream)
        else:
            print(f"  Issues found: {', '.join(report.issues.names())}", file=self.printer.stream)

        if report.fixes:
            applied = [issue.value for issue, ok in report.fixes.items() if ok]
            failed = [issue.value for issue, ok in report.fixes.items() if not ok]
            print(f"  Fixes applied: {len(applied)}/{len(report.fixes)}", file=self.printer.stream)
            if failed:
                print(f"  {cm.color(Colors.YELLOW, 'Not fixed: ' + ', '.join(failed))}",
                      file=self.printer.stream)
        elif report.issues and report.verified is None:
            print("  No fixes applied", file=self.printer.stream)

        if report.backup is not None:
            print(f"  Backups: {report.backup.directory}", file=self.printer.stream)

        if report.verified is True:
            self.printer.success("NAT bridge verified: bridges up, internet reachable")
        elif report.verified is False:
            self.printer.warning("Verification did not pass; check the messages above")
