"""Render charts from an exported insights payload.

Reads insights.json (written by habit_summary.py) and saves PNG charts next
to it: the ten-day water trend, checkbox completion rates and one bar chart
per rating/select distribution.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd  # noqa: E402
import seaborn as sns  # noqa: E402


def plot_water_trend(water: dict[str, Any], output_dir: Path) -> Path:
    df = pd.DataFrame(water["points"])
    df["date"] = pd.to_datetime(df["date"])
    df["value"] = pd.to_numeric(df["value"])
    df["avg_3d"] = df["value"].rolling(window=3, min_periods=1).mean()

    plt.figure(figsize=(12, 6))
    plt.bar(df["date"], df["value"], alpha=0.5, color="skyblue", label="Daily")
    plt.plot(df["date"], df["avg_3d"], color="red", linewidth=2, label="3-day Average")
    plt.title(f"{water['prompt']} (last {len(df)} days)", fontsize=14, pad=20)
    plt.xlabel("Date", fontsize=12)
    plt.ylabel("Amount", fontsize=12)
    plt.grid(True, alpha=0.3)
    plt.legend()
    plt.xticks(rotation=45)
    plt.tight_layout()

    path = output_dir / "water_trend.png"
    plt.savefig(path, dpi=150, bbox_inches="tight")
    plt.close()
    return path


def plot_checkbox_completion(questions: list[dict], output_dir: Path) -> Path:
    df = pd.DataFrame(
        {
            "prompt": [q["prompt"] for q in questions],
            "completion_rate": [q["completion_rate"] for q in questions],
        }
    )

    plt.figure(figsize=(12, max(3, len(df) * 0.6)))
    sns.barplot(data=df, x="completion_rate", y="prompt", color="lightgreen")
    plt.xlim(0, 100)
    plt.title("Checkbox Completion Rate", fontsize=14, pad=20)
    plt.xlabel("Completion (%)", fontsize=12)
    plt.ylabel("")
    plt.grid(True, axis="x", alpha=0.3)
    plt.tight_layout()

    path = output_dir / "checkbox_completion.png"
    plt.savefig(path, dpi=150, bbox_inches="tight")
    plt.close()
    return path


def plot_distribution(question: dict, output_dir: Path) -> Path:
    df = pd.DataFrame(question["distribution"])

    plt.figure(figsize=(10, 6))
    sns.barplot(data=df, x="label", y="count", color="lightcoral")
    plt.title(question["prompt"], fontsize=14, pad=20)
    plt.xlabel("")
    plt.ylabel("Days", fontsize=12)
    plt.grid(True, axis="y", alpha=0.3)
    plt.tight_layout()

    path = output_dir / f"distribution_{question['id']}.png"
    plt.savefig(path, dpi=150, bbox_inches="tight")
    plt.close()
    return path


def render_insights_charts(payload: dict[str, Any], output_dir: str | Path) -> list[Path]:
    """Save every chart that applies to *payload* and return their paths.

    Args:
        payload: Insights payload as returned by the API or written to
            insights.json.
        output_dir: Destination directory; created if missing.

    Returns:
        Paths of the PNG files written, in rendering order.
    """
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []

    if payload.get("waterTrend"):
        written.append(plot_water_trend(payload["waterTrend"], out))

    checkboxes = [q for q in payload["questions"] if q["type"] == "checkbox"]
    if checkboxes:
        written.append(plot_checkbox_completion(checkboxes, out))

    for question in payload["questions"]:
        if question["type"] in ("rating", "select") and question["distribution"]:
            written.append(plot_distribution(question, out))

    return written


def main(input_dir: str = "habit_insights") -> None:
    with open(Path(input_dir) / "insights.json", "r", encoding="utf-8") as f:
        payload = json.load(f)

    written = render_insights_charts(payload, input_dir)
    names = ", ".join(f"'{p.name}'" for p in written) or "no charts"
    print(f"Visualizations have been saved as {names} in the {input_dir} directory")


if __name__ == "__main__":
    main(*sys.argv[1:2])
