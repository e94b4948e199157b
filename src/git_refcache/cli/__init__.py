"""Command line interface of git-refcache"""
