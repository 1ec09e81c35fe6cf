# Figures for rescaled suitability, risk quadrants, and variable importance
# Spotted lanternfly SDM post-processing, October 2026

import os
import matplotlib.pyplot as plt
import geopandas as gpd
import contextily as ctx  # For basemaps in risk maps

from risk_utils import RISK_CATEGORIES

RISK_COLORS = {"extreme": "darkred", "high": "darkorange", "moderate": "gold", "low": "steelblue"}


def plot_risk_quadrants(risk_df, x_label, y_label, out_path, thresh_x=0.5, thresh_y=0.5,
                        comparison=None, title="Risk Quadrants"):
    """
    Scatter of rescaled global (x) vs. regional (y) suitability colored by risk category.
    If a comparison table (from compare_time_periods) is given, draw arrows for points that cross a threshold.
    """
    fig, ax = plt.subplots(figsize=(7, 7))

    for category in RISK_CATEGORIES[::-1]:
        subset = risk_df[risk_df["risk_category"].astype(str) == category]
        if not subset.empty:
            ax.scatter(subset[x_label], subset[y_label], s=12, alpha=0.7,
                       color=RISK_COLORS[category], label=category)

    if comparison is not None:
        movers = comparison[comparison["crossing"].astype(str) != "none"]
        for _, row in movers.iterrows():
            ax.annotate(
                "",
                xy=(row[f"{x_label}_fut"], row[f"{y_label}_fut"]),
                xytext=(row[f"{x_label}_hist"], row[f"{y_label}_hist"]),
                arrowprops=dict(arrowstyle="->", color="black", lw=0.6, alpha=0.6),
            )

    ax.axvline(thresh_x, linestyle="--", color="gray")
    ax.axhline(thresh_y, linestyle="--", color="gray")
    ax.set_xlim(0, 1)
    ax.set_ylim(0, 1)
    ax.set_xlabel(x_label)
    ax.set_ylabel(y_label)
    ax.set_title(title)
    ax.legend(loc="lower right", title="Risk")

    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    plt.tight_layout()
    plt.savefig(out_path, dpi=300)
    plt.close(fig)
    return out_path


def map_risk_categories(risk_df, out_path, basemap=True, title="Risk Categories"):
    """
    Map sample points colored by risk category, optionally on a contextily basemap
    """
    gdf = gpd.GeoDataFrame(
        risk_df,
        geometry=gpd.points_from_xy(risk_df.x, risk_df.y),
        crs="EPSG:4326"  # WGS84
    )
    gdf = gdf.to_crs(epsg=3857)  # Web Mercator for basemaps

    fig, ax = plt.subplots(figsize=(10, 10))
    for category in RISK_CATEGORIES[::-1]:
        subset = gdf[gdf["risk_category"].astype(str) == category]
        if not subset.empty:
            subset.plot(ax=ax, color=RISK_COLORS[category], markersize=15, label=category, alpha=0.7)

    if basemap:
        ctx.add_basemap(ax, crs=gdf.crs)
    ax.set_title(title, fontsize=14)
    ax.axis("off")
    ax.legend(loc="lower left", fontsize=9, title="Risk")

    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    plt.tight_layout()
    plt.savefig(out_path, dpi=300)
    plt.close(fig)
    return out_path


def plot_variable_importance(importance_df, out_path, column=None, top_n=20, title="Variable Importance"):
    """
    Horizontal bar chart of variable importance
    """
    if column is None:
        column = "Permutation_importance" if "Permutation_importance" in importance_df.columns else "Percent_contribution"
    df = importance_df.nlargest(top_n, column).iloc[::-1]

    fig, ax = plt.subplots(figsize=(6, max(3, 0.3 * len(df))))
    ax.barh(df["Variable"], df[column], color="gray")
    ax.set_xlabel(column.replace("_", " "))
    ax.set_title(title)

    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    plt.tight_layout()
    plt.savefig(out_path, dpi=300)
    plt.close(fig)
    return out_path


def plot_risk_summary_table(summary_df, out_path, title="Risk Summary"):
    """
    Render a summary table (from summarize_risk) as an image
    """
    fig, ax = plt.subplots(figsize=(6, 0.5 + 0.4 * (len(summary_df) + 1)))
    ax.axis("off")
    table = ax.table(
        cellText=summary_df.astype(str).values,
        colLabels=[str(c) for c in summary_df.columns],
        loc="center",
        cellLoc="center",
    )
    table.scale(1, 1.4)
    ax.set_title(title)

    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    plt.savefig(out_path, dpi=300, bbox_inches="tight")
    plt.close(fig)
    return out_path

# EOF
