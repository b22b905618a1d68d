# /*
# Copyright 2026 The DevSecOps Stack Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Per-step success/failure bookkeeping and summary rendering."""

from __future__ import annotations

from dataclasses import dataclass, field

from rich.panel import Panel

from stack_manager import console


@dataclass
class StepReport:
    """Ordered record of which named steps succeeded and which failed."""

    successful: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def record(self, name: str, ok: bool) -> None:
        (self.successful if ok else self.failed).append(name)

    def succeeded(self, name: str) -> bool:
        return name in self.successful

    @property
    def ok(self) -> bool:
        return not self.failed


def print_summary(report: StepReport, title: str, success_label: str, failure_label: str) -> None:
    """Print the successful and failed step names of *report*."""
    console.print(Panel.fit(title, style="bold blue"))
    if report.successful:
        console.print(f"[green]{success_label} ({len(report.successful)}):[/green]")
        for name in report.successful:
            console.print(f"  [green]✓[/green] {name}")
    if report.failed:
        console.print(f"[red]{failure_label} ({len(report.failed)}):[/red]")
        for name in report.failed:
            console.print(f"  [red]✗[/red] {name}")
