"""Novo collaborative project tracker"""
