"""HTML for the private dashboard page served at /view/{token}."""

import html
from string import Template

# The legend color formula must stay in sync with chart_service.color_for_index
_PAGE = Template("""<!DOCTYPE html>
<html>
<head>
  <title>Your Data Timeline</title>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <style>
    body { font-family: Arial, sans-serif; margin: 0; padding: 20px; background: #f5f5f5;
           display: flex; flex-direction: column; align-items: center; }
    .panel { background: white; border-radius: 8px; padding: 20px; margin: 20px 0; width: 90%;
             max-width: 1100px; box-shadow: 0 2px 10px rgba(0, 0, 0, 0.1); }
    .notice { border-left: 4px solid #4CAF50; padding: 10px 15px; color: #666; font-size: 14px; }
    img { max-width: 100%; height: auto; }
    .legend { display: flex; flex-wrap: wrap; gap: 10px; margin: 15px 0; }
    .legend-item { display: flex; align-items: center; padding: 5px 10px; cursor: pointer; user-select: none; }
    .legend-item.disabled { opacity: 0.5; }
    .legend-color { width: 20px; height: 20px; border-radius: 3px; margin-right: 8px; }
    table { width: 100%; border-collapse: collapse; }
    th, td { padding: 10px 15px; text-align: left; border-bottom: 1px solid #ddd; }
    .date-header { font-weight: bold; background: #eee; text-align: center; }
  </style>
</head>
<body>
  <h1>Your Data Timeline</h1>
  <p>Showing $point_count data points across $metric_count metrics</p>
  <div class="notice"><strong>Private Dashboard</strong>: this page shows only your data.</div>

  <div class="panel">
    <div><strong>Toggle metrics:</strong></div>
    <div class="legend" id="legend"></div>
    <img src="/chart/$token" alt="Data Timeline Chart" id="chart-image">
  </div>

  <div class="panel">
    <table>
      <thead><tr><th>Date</th><th>Time</th><th>Metric</th><th>Value</th></tr></thead>
      <tbody id="data-table-body"></tbody>
    </table>
  </div>

  <script>
    const userToken = "$token";
    let hiddenKeys = [];
    let allData = [];

    function generateColor(index) {
      const hue = (index * 137) % 360;
      return `hsl($${hue}, 70%, 60%)`;
    }

    function loadData() {
      return fetch("/data/" + userToken)
        .then(response => response.ok ? response.json() : [])
        .then(data => { allData = data; });
    }

    function createLegend() {
      const legend = document.getElementById("legend");
      legend.innerHTML = "";
      const keys = [...new Set(allData.map(p => p.key))].sort();
      keys.forEach((key, index) => {
        const item = document.createElement("div");
        item.className = "legend-item" + (hiddenKeys.includes(key) ? " disabled" : "");
        const swatch = document.createElement("div");
        swatch.className = "legend-color";
        swatch.style.backgroundColor = generateColor(index);
        const label = document.createElement("span");
        label.textContent = key;
        item.append(swatch, label);
        item.addEventListener("click", () => toggleKey(key, item));
        legend.appendChild(item);
      });
    }

    function toggleKey(key, item) {
      const index = hiddenKeys.indexOf(key);
      if (index === -1) { hiddenKeys.push(key); item.classList.add("disabled"); }
      else { hiddenKeys.splice(index, 1); item.classList.remove("disabled"); }
      updateChart();
      populateTable();
    }

    function updateChart() {
      const params = new URLSearchParams({ t: Date.now() });
      if (hiddenKeys.length > 0) params.set("hidden", hiddenKeys.join(","));
      document.getElementById("chart-image").src = `/chart/$${userToken}?$${params}`;
    }

    function populateTable() {
      const body = document.getElementById("data-table-body");
      body.innerHTML = "";
      const byDate = {};
      allData.filter(p => !hiddenKeys.includes(p.key)).forEach(p => {
        (byDate[p.formattedDate] = byDate[p.formattedDate] || []).push(p);
      });
      Object.keys(byDate)
        .sort((a, b) => byDate[b][0].timestamp.localeCompare(byDate[a][0].timestamp))
        .forEach(date => {
          const header = body.insertRow();
          const cell = header.insertCell();
          cell.colSpan = 4;
          cell.className = "date-header";
          cell.textContent = date;
          byDate[date].forEach(p => {
            const row = body.insertRow();
            [p.formattedDate, p.formattedTime, p.key, p.value].forEach(text => {
              row.insertCell().textContent = text;
            });
          });
        });
    }

    window.addEventListener("DOMContentLoaded", () => {
      loadData().then(() => { createLegend(); populateTable(); });
    });
  </script>
</body>
</html>
""")


def render_dashboard(token: str, point_count: int, metric_count: int) -> str:
    """Render the dashboard page for a user token."""
    return _PAGE.substitute(
        token=html.escape(token),
        point_count=point_count,
        metric_count=metric_count,
    )
