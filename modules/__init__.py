"""
Ligand Activity Framework - Modules

This package organizes the framework modules:
- 01_network_data: Multi-source edge tables, gene lists and error types
- 02_network_integration: Source-weighted ligand-signaling and gene-regulatory graphs
- 03_regulatory_potential: Network propagation and the ligand-target matrix
- 04_signaling_paths: Ligand-to-target signaling sub-networks and their data sources
- 05_ligand_activity: Ligand ranking by gene set target prediction
"""

__version__ = "0.1.0"
