"""Simulated network: messages, latency models, links, faults and the coordinator."""